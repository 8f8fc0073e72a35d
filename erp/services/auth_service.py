"""
Bearer token handling. Tokens are issued by the identity service; this
service only needs to verify them (and mint them for scripts and tests).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
import structlog

from erp.config import settings

logger = structlog.get_logger()

# ---------- JWT key loading ----------

_private_key: Optional[str] = None
_public_key: Optional[str] = None


def _load_private_key() -> str:
    global _private_key
    if _private_key is None:
        with open(settings.JWT_PRIVATE_KEY_PATH, "r") as f:
            _private_key = f.read()
    return _private_key


def _load_public_key() -> str:
    global _public_key
    if _public_key is None:
        with open(settings.JWT_PUBLIC_KEY_PATH, "r") as f:
            _public_key = f.read()
    return _public_key


def reset_key_cache() -> None:
    global _private_key, _public_key
    _private_key = None
    _public_key = None


# ---------- token generation ----------

def create_access_token(
    user_id: str,
    tenant_id: str,
    role: str,
    email: str,
) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "tenant_id": str(tenant_id),
        "role": role,
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "type": "access",
    }
    if settings.JWT_ISSUER:
        claims["iss"] = settings.JWT_ISSUER
    return jwt.encode(claims, _load_private_key(), algorithm=settings.JWT_ALGORITHM)


# ---------- token verification ----------

def verify_access_token(token: str) -> dict:
    """Verify an access token and return its claims. Raises JWTError on failure."""
    payload = jwt.decode(
        token,
        _load_public_key(),
        algorithms=[settings.JWT_ALGORITHM],
        issuer=settings.JWT_ISSUER,
    )
    if payload.get("type") != "access":
        raise JWTError("Not an access token")
    return payload
