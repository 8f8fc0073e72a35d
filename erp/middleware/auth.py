from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError
import structlog

from erp.services.auth_service import verify_access_token

logger = structlog.get_logger()

security = HTTPBearer()

CLAIMS = ("user_id", "tenant_id", "role", "email")


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": {"code": code, "message": message}},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Verify the bearer token and return the caller as
    {user_id, tenant_id, role, email}. Ids stay strings here; routes parse
    them with erp.middleware.tenant.user_uuid / tenant_uuid.
    """
    try:
        payload = verify_access_token(credentials.credentials)
    except ExpiredSignatureError:
        raise _unauthorized("AUTH_TOKEN_EXPIRED", "Token has expired")
    except JWTError as e:
        logger.warning("auth_token_invalid", error=str(e))
        raise _unauthorized("AUTH_TOKEN_INVALID", "Invalid or expired token")

    user = {
        "user_id": payload.get("sub"),
        "tenant_id": payload.get("tenant_id"),
        "role": payload.get("role"),
        "email": payload.get("email"),
    }
    missing = [claim for claim in CLAIMS if not user[claim]]
    if missing:
        logger.warning("auth_token_incomplete", missing=missing)
        raise _unauthorized("AUTH_TOKEN_INVALID", "Token is missing required claims")

    structlog.contextvars.bind_contextvars(user_id=user["user_id"])
    return user
