"""
Read-only views of the stored vacation policies.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from shiftpro.api.v1.deps import Principal, get_current_principal, get_services
from shiftpro.domain.calendar_math import month_key
from shiftpro.domain.models import VacationLimits
from shiftpro.schemas.vacation import LimitsLookupResponse
from shiftpro.services.boss_session import check_month
from shiftpro.services.container import ServiceContainer

router = APIRouter(prefix="/limits", tags=["limits"])


@router.get("", response_model=list[VacationLimits])
async def list_published_limits(
    services: ServiceContainer = Depends(get_services),
    _principal: Principal = Depends(get_current_principal),
) -> list[VacationLimits]:
    """All published policies, oldest month first."""
    return await services.store.list_published()


@router.get("/{year}/{month}", response_model=LimitsLookupResponse)
async def lookup_limits(
    year: int,
    month: int,
    services: ServiceContainer = Depends(get_services),
    _principal: Principal = Depends(get_current_principal),
) -> LimitsLookupResponse:
    """Published, draft only, or nothing stored for the month."""
    check_month(year, month)
    lookup = await services.store.lookup(year, month)
    return LimitsLookupResponse(
        month=month_key(year, month),
        state=lookup.state.value,
        limits=lookup.limits,
    )
