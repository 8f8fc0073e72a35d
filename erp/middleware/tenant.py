import uuid

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from erp.database import get_db, set_tenant_context
from erp.middleware.auth import get_current_user


def _claim_uuid(current_user: dict, claim: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(current_user[claim]))
    except (KeyError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "AUTH_TOKEN_INVALID",
                    "message": f"Token claim '{claim}' is not a valid id",
                }
            },
        )


def user_uuid(current_user: dict) -> uuid.UUID:
    return _claim_uuid(current_user, "user_id")


def tenant_uuid(current_user: dict) -> uuid.UUID:
    return _claim_uuid(current_user, "tenant_id")


async def get_db_with_tenant(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AsyncSession:
    """FastAPI dependency: get DB session with RLS tenant context set."""
    await set_tenant_context(db, str(tenant_uuid(current_user)))
    return db
