"""
Calendar endpoints — month grid, week ranges and week-of-month tallies.

Pure calendar arithmetic; no authentication, no stored state.
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from shiftpro.domain.calendar_math import (
    date_key,
    days_grid,
    format_week_range,
    month_key,
    parse_date_key,
    week_of_month,
    week_range,
    weekly_stats,
    weeks_in_month,
)
from shiftpro.schemas.vacation import (
    DayCellRead,
    MonthGridResponse,
    WeekBucket,
    WeeklyStatsRequest,
    WeeklyStatsResponse,
    WeekRangeResponse,
)
from shiftpro.services.boss_session import check_month

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/week-range", response_model=WeekRangeResponse)
async def get_week_range(date: str = Query(..., description="YYYY-MM-DD")) -> WeekRangeResponse:
    """Monday..Sunday range around ``date``."""
    d = parse_date_key(date)
    rng = week_range(d)
    return WeekRangeResponse(
        date=date_key(d),
        start=date_key(rng.start),
        end=date_key(rng.end),
        display=rng.display(),
    )


@router.get("/{year}/{month}/grid", response_model=MonthGridResponse)
async def get_month_grid(year: int, month: int) -> MonthGridResponse:
    """Six Sunday-first weeks for the month view."""
    check_month(year, month)
    cells = [
        DayCellRead(
            date=cell.key,
            day=cell.date.day,
            within_displayed_month=cell.within_displayed_month,
            week_of_month=week_of_month(cell.date) if cell.within_displayed_month else None,
        )
        for cell in days_grid(year, month)
    ]
    return MonthGridResponse(
        month=month_key(year, month),
        weeks_in_month=weeks_in_month(year, month),
        cells=cells,
    )


@router.post("/{year}/{month}/weekly-stats", response_model=WeeklyStatsResponse)
async def post_weekly_stats(year: int, month: int, body: WeeklyStatsRequest) -> WeeklyStatsResponse:
    """Count dates per week of the month; malformed or foreign dates are ignored."""
    check_month(year, month)
    key = month_key(year, month)
    stats = weekly_stats(body.dates, key)
    return WeeklyStatsResponse(
        month=key,
        weeks=[
            WeekBucket(week=week, count=count, range=format_week_range(week, key))
            for week, count in stats.items()
        ],
    )
