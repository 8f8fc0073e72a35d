"""
Domain errors raised by services, and the FastAPI handlers that render them.

    NotFoundError      -> 404
    BusinessError      -> 400
    ConflictError      -> 409
    AccessDeniedError  -> 403

Every error response has the shape {"error": {"code": "...", "message": "..."}}.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
import structlog

logger = structlog.get_logger()


class ErpError(Exception):
    code = "ERROR"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class NotFoundError(ErpError):
    code = "RESOURCE_NOT_FOUND"
    status_code = 404

    def __init__(self, kind: str, resource_id: Any):
        super().__init__(f"{kind} not found with ID: {resource_id}")
        self.kind = kind
        self.resource_id = resource_id


class BusinessError(ErpError):
    code = "BUSINESS_RULE_VIOLATION"
    status_code = 400


class ConflictError(BusinessError):
    code = "CONCURRENT_MODIFICATION"
    status_code = 409


class AccessDeniedError(ErpError):
    code = "APPROVAL_NOT_YOUR_TURN"
    status_code = 403


async def _erp_error(request: Request, exc: ErpError) -> JSONResponse:
    log = logger.info if isinstance(exc, NotFoundError) else logger.warning
    log("request_failed", error_code=exc.code, status_code=exc.status_code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, str):
        detail = {"error": {"code": "HTTP_ERROR", "message": detail}}
    elif isinstance(detail, dict) and "error" not in detail:
        detail = {"error": detail}
    return JSONResponse(status_code=exc.status_code, content=detail, headers=exc.headers)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # ctx may hold exception instances that JSONResponse cannot encode
    details = [
        {k: v for k, v in err.items() if k in ("loc", "msg", "type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": details,
            }
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ErpError, _erp_error)
    app.add_exception_handler(HTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
