from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Response, status
from fastapi.middleware.cors import CORSMiddleware
import structlog

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from erp.config import settings
from erp.database import init_db, close_db, get_db
from erp.exceptions import register_exception_handlers
from erp.logging_config import setup_logging
from erp.middleware.correlation import CorrelationIdMiddleware
from erp.routes.approvals import router as approvals_router
from erp.routes.chain_templates import router as chain_templates_router

# Import models so they are registered with Base.metadata
import erp.models  # noqa: F401

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("starting_erp_approvals", env=settings.ENVIRONMENT, version=settings.APP_VERSION)
    await init_db()
    yield
    await close_db()
    logger.info("stopped_erp_approvals")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)
register_exception_handlers(app)

app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

app.include_router(approvals_router, prefix="/api/v1/approvals", tags=["Approvals"])
app.include_router(
    chain_templates_router,
    prefix="/api/v1/approval-chain-templates",
    tags=["Approval Chain Templates"],
)


@app.get("/health", tags=["System"])
async def health(response: Response, db: AsyncSession = Depends(get_db)):
    """Liveness plus a database round trip; 503 when the database is unreachable."""
    checks = {}
    try:
        await db.execute(text("SELECT 1"))
        checks["db"] = "ok"
    except Exception as e:
        logger.error("health_check_db_failed", error=str(e))
        checks["db"] = "error"

    healthy = all(v == "ok" for v in checks.values())
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "healthy" if healthy else "unhealthy",
        "version": settings.APP_VERSION,
        "checks": checks,
    }
