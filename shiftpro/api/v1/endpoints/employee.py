"""
Employee endpoints — month view, edit mode, date toggles, submission.

Quota and publication rejections come back from the session as values and
are raised here so the registered handlers render them (HTTP 409).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from shiftpro.api.v1.deps import get_employee_session
from shiftpro.core.config import settings
from shiftpro.schemas.vacation import EmployeeVacationResponse, ToggleRequest, ToggleResponse
from shiftpro.services.employee_session import EmployeeSessionController

# Month-view throttle, keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/employee/vacation", tags=["employee"])
logger = logging.getLogger(__name__)


def _snapshot(session: EmployeeSessionController) -> EmployeeVacationResponse:
    report = session.validate()
    return EmployeeVacationResponse(
        month=session.displayed_month,
        selected_dates=sorted(session.data.selected_dates),
        is_submitted=session.data.is_submitted,
        edit_mode=session.edit_mode,
        is_policy_published=session.is_policy_published,
        vacation_type=session.limits.vacation_type,
        vacation_mode=session.vacation_mode.value,
        monthly_limit=session.monthly_limit,
        weekly_limit=session.weekly_limit,
        monthly_remaining=session.remaining().monthly_remaining,
        weekly_stats=report.weekly_counts,
        violating_weeks=report.violating_weeks,
    )


@router.get("/{year}/{month}", response_model=EmployeeVacationResponse)
@limiter.limit(settings.MONTH_VIEW_RATE_LIMIT)
async def get_month(
    request: Request,
    year: int,
    month: int,
    session: EmployeeSessionController = Depends(get_employee_session),
) -> EmployeeVacationResponse:
    """Selection and effective policy for the month; re-reads the policy."""
    async with session.focused(year, month, reload=True):
        return _snapshot(session)


@router.post("/{year}/{month}/edit", response_model=EmployeeVacationResponse)
async def request_edit(
    year: int,
    month: int,
    session: EmployeeSessionController = Depends(get_employee_session),
) -> EmployeeVacationResponse:
    async with session.focused(year, month):
        rejection = await session.request_edit()
        if rejection is not None:
            raise rejection
        return _snapshot(session)


@router.post("/{year}/{month}/toggle", response_model=ToggleResponse)
async def toggle_date(
    year: int,
    month: int,
    body: ToggleRequest,
    session: EmployeeSessionController = Depends(get_employee_session),
) -> ToggleResponse:
    """Add the date if unselected, remove it if selected."""
    async with session.focused(year, month):
        result = await session.toggle_date(body.date)
        if result.rejection is not None:
            raise result.rejection
        remaining = result.remaining
        return ToggleResponse(
            date=body.date,
            added=result.added,
            removed=result.removed,
            monthly_remaining=remaining.monthly_remaining if remaining else None,
            weekly_remaining=remaining.weekly_remaining if remaining else None,
            week=remaining.week if remaining else None,
            vacation=_snapshot(session),
        )


@router.post("/{year}/{month}/submit", response_model=EmployeeVacationResponse)
async def submit(
    year: int,
    month: int,
    session: EmployeeSessionController = Depends(get_employee_session),
) -> EmployeeVacationResponse:
    async with session.focused(year, month):
        result = await session.submit()
        if result.rejection is not None:
            raise result.rejection
        return _snapshot(session)


@router.delete("/{year}/{month}", response_model=EmployeeVacationResponse)
async def clear(
    year: int,
    month: int,
    session: EmployeeSessionController = Depends(get_employee_session),
) -> EmployeeVacationResponse:
    """Wipe the month's selection, including a submitted one."""
    async with session.focused(year, month):
        await session.clear()
        return _snapshot(session)
