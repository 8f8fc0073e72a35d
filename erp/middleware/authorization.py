from typing import Iterable

from fastapi import Depends, HTTPException, status
import structlog

from erp.config import settings
from erp.middleware.auth import get_current_user

logger = structlog.get_logger()


def ensure_role(current_user: dict, allowed_roles: Iterable[str], action: str) -> None:
    """Raise 403 unless the caller's role is one of allowed_roles."""
    allowed = tuple(allowed_roles)
    role = current_user.get("role")
    if role in allowed:
        return
    logger.warning("role_denied", role=role, action=action, allowed=list(allowed))
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "error": {
                "code": "INSUFFICIENT_PERMISSIONS",
                "message": f"Role '{role}' cannot {action}. Required: {', '.join(allowed)}",
            }
        },
    )


def require_roles(*allowed_roles: str, action: str = "perform this action"):
    """
    FastAPI dependency factory for role-based access control.

    Usage:
        @router.put("/{template_id}/levels")
        async def update_levels(
            _auth: None = Depends(require_roles("admin", action="edit approval chains")),
        ):
    """
    async def check_role(current_user: dict = Depends(get_current_user)):
        ensure_role(current_user, allowed_roles, action)

    return check_role


def require_chain_admin():
    return require_roles(*settings.chain_admin_roles, action="manage approval chains")


def ensure_approval_auditor(current_user: dict) -> None:
    ensure_role(current_user, settings.approval_audit_roles, "list all approval requests")
