"""
FastAPI dependencies — service container and role guards.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shiftpro.core.security import ROLE_BOSS, ROLE_EMPLOYEE, decode_access_token
from shiftpro.services.container import ServiceContainer
from shiftpro.services.employee_session import EmployeeSessionController

# auto_error=False so a missing header can fall back to the cookie
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    subject: str
    role: str


# ── Services ────────────────────────────────────────────────────────
async def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    access_token: Optional[str] = Cookie(default=None),
) -> Principal:
    """Decode JWT from Header OR Cookie."""
    final_token = credentials.credentials if credentials else None
    if not final_token and access_token:
        final_token = access_token.removeprefix("Bearer ")

    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not final_token:
        raise credentials_exc

    payload = decode_access_token(final_token)
    if payload is None or not payload.get("sub"):
        raise credentials_exc
    return Principal(subject=str(payload["sub"]), role=payload["role"])


async def require_boss(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    if principal.role != ROLE_BOSS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Boss privileges required",
        )
    return principal


async def require_employee(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    if principal.role != ROLE_EMPLOYEE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employee account required",
        )
    return principal


async def get_employee_session(
    principal: Principal = Depends(require_employee),
    services: ServiceContainer = Depends(get_services),
) -> EmployeeSessionController:
    return await services.employee_session(principal.subject)
