"""
JWT access-token creation / verification.

Tokens are issued by the organization's identity provider and carry the
subject (user id) and the role (``boss`` or ``employee``). This service only
verifies them; ``create_access_token`` exists for trusted tooling and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from shiftpro.core.config import settings

ROLE_BOSS = "boss"
ROLE_EMPLOYEE = "employee"
VALID_ROLES = {ROLE_BOSS, ROLE_EMPLOYEE}


def create_access_token(
    subject: str | Any,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    if role not in VALID_ROLES:
        raise ValueError(f"Role must be one of: {VALID_ROLES}")
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode(
        {"exp": expire, "sub": str(subject), "role": role, "type": "access"},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


def decode_access_token(token: str) -> dict | None:
    """Return payload dict if *access* token is valid, else ``None``."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access" or payload.get("role") not in VALID_ROLES:
        return None
    return payload
