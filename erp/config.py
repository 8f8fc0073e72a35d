from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


def _csv(value: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in value.split(",") if p.strip())


class Settings(BaseSettings):
    APP_NAME: str = "ERP Approvals"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- database ---
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/erp"
    DATABASE_SYNC_URL: str = ""  # alembic only
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_RECYCLE: int = 300
    DB_SSL_REQUIRED: bool = False

    # --- bearer tokens (issued by the identity service) ---
    JWT_PRIVATE_KEY_PATH: Optional[str] = "keys/private.pem"
    JWT_PUBLIC_KEY_PATH: Optional[str] = "keys/public.pem"
    JWT_ALGORITHM: str = "RS256"
    JWT_ISSUER: Optional[str] = None
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # --- approvals ---
    CHAIN_ADMIN_ROLES: str = "admin"
    APPROVAL_AUDIT_ROLES: str = "admin,finance"
    APPROVAL_LIST_DEFAULT_LIMIT: int = 20
    APPROVAL_LIST_MAX_LIMIT: int = 100

    CORS_ORIGINS: str = "http://localhost:3000"
    CORS_ORIGIN_REGEX: Optional[str] = None

    @property
    def cors_origins_list(self) -> list[str]:
        return list(_csv(self.CORS_ORIGINS))

    @property
    def chain_admin_roles(self) -> tuple[str, ...]:
        return _csv(self.CHAIN_ADMIN_ROLES)

    @property
    def approval_audit_roles(self) -> tuple[str, ...]:
        """Roles that may list every approval request, not just their own queue."""
        return _csv(self.APPROVAL_AUDIT_ROLES)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
