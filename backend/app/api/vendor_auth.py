"""Vendor identity: bearer tokens issued by the identity provider, verified here."""
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Header, HTTPException

from backend.app.core.logging import bind_vendor_context
from backend.app.core.settings import get_settings

JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = 24 * 7  # 7 days
VENDOR_ROLE = "vendor"


def _jwt_secret() -> str:
    secret = get_settings().JWT_SECRET
    if not secret:
        raise RuntimeError("JWT_SECRET must be set to verify vendor tokens")
    return secret


def create_vendor_token(vendor_id: str, expires_in_hours: int = JWT_EXPIRY_HOURS) -> str:
    """Create a vendor token (used by the identity provider side and in tests)."""
    payload = {
        "sub": vendor_id,
        "role": VENDOR_ROLE,
        "exp": datetime.utcnow() + timedelta(hours=expires_in_hours),
        "iat": datetime.utcnow(),
    }
    return jwt.encode(payload, _jwt_secret(), algorithm=JWT_ALGORITHM)


def decode_vendor_token(token: str) -> Optional[str]:
    """Decode JWT and return the vendor id, or None if the token is not usable."""
    try:
        payload = jwt.decode(token, _jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    if payload.get("role") != VENDOR_ROLE:
        return None
    vendor_id = payload.get("sub")
    if not isinstance(vendor_id, str) or not vendor_id:
        return None
    return vendor_id


async def require_vendor_token(
    x_vendor_token: Optional[str] = Header(None, alias="X-Vendor-Token"),
) -> str:
    """Dependency: require valid vendor token, return vendor_id."""
    if not x_vendor_token:
        raise HTTPException(status_code=401, detail="Authorization required")
    vendor_id = decode_vendor_token(x_vendor_token)
    if vendor_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    bind_vendor_context(vendor_id)
    return vendor_id
