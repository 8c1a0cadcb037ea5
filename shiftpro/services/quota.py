"""
Quota engine — monthly and weekly caps applied to a month's selection.

All functions are pure: they take a ``VacationData`` and a ``VacationLimits``
and return results (and new ``VacationData`` values) without touching
storage. Business-rule rejections are returned, not raised.

Weekly caps apply only when the vacation mode enforces them (``weekly`` and
``monthlyWithWeeklyLimit``); the mode defaults to the one derived from the
policy, which is ``weekly`` only for weekly policies. For a pending add, the
week count excludes the date being tested, so an add is accepted while
``count < weekly_limit``. Dates outside the selection's month raise
``DateOutsideMonth``, as malformed keys raise ``MalformedDateKey``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from shiftpro.core.exceptions import (
    AlreadySubmitted,
    DateOutsideMonth,
    MonthlyLimitExceeded,
    MonthlyLimitReached,
    QuotaExceeded,
    ShiftProError,
    WeeklyLimitExceeded,
    WeeklyLimitReached,
)
from shiftpro.domain.calendar_math import month_key, parse_date_key, week_of_month, weekly_stats
from shiftpro.domain.models import VacationData, VacationLimits, VacationMode

Rejection = ShiftProError


@dataclass(frozen=True)
class RemainingSummary:
    monthly_remaining: int | None
    weekly_remaining: int | None = None
    week: int | None = None


@dataclass(frozen=True)
class ToggleResult:
    data: VacationData
    added: bool = False
    removed: bool = False
    remaining: RemainingSummary | None = None
    rejection: Rejection | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True)
class ValidationReport:
    is_valid: bool
    violating_weeks: list[int] = field(default_factory=list)
    weekly_counts: dict[int, int] = field(default_factory=dict)
    monthly_overflow: int = 0


@dataclass(frozen=True)
class SubmitResult:
    data: VacationData
    rejection: Rejection | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


def _mode(limits: VacationLimits, mode: VacationMode | None) -> VacationMode:
    return mode if mode is not None else VacationMode.for_limits(limits)


def _weekly_cap(limits: VacationLimits, mode: VacationMode) -> int | None:
    return limits.weekly_limit if mode.enforces_weekly else None


def _week_count(data: VacationData, week: int, exclude: str | None = None) -> int:
    dates = data.selected_dates - {exclude} if exclude else data.selected_dates
    return weekly_stats(dates, data.month).get(week, 0)


def _parse_in_month(date_str: str, data: VacationData) -> date:
    d = parse_date_key(date_str)
    if data.month and month_key(d.year, d.month) != data.month:
        raise DateOutsideMonth(date_str, data.month)
    return d


def remaining(
    data: VacationData,
    limits: VacationLimits,
    date_str: str | None = None,
    mode: VacationMode | None = None,
) -> RemainingSummary:
    """Days left this month and, for ``date_str``'s week, days left that week."""
    monthly_left = None
    if limits.monthly_limit is not None:
        monthly_left = limits.monthly_limit - data.selected_count
    cap = _weekly_cap(limits, _mode(limits, mode))
    if date_str is None or cap is None:
        return RemainingSummary(monthly_remaining=monthly_left)
    week = week_of_month(parse_date_key(date_str))
    return RemainingSummary(
        monthly_remaining=monthly_left,
        weekly_remaining=cap - _week_count(data, week),
        week=week,
    )


def can_add(
    date_str: str,
    data: VacationData,
    limits: VacationLimits,
    mode: VacationMode | None = None,
) -> Rejection | None:
    """``None`` when ``date_str`` may be added, else the reason it may not."""
    if data.is_submitted:
        return AlreadySubmitted()
    d = _parse_in_month(date_str, data)
    already = data.is_selected(date_str)
    if (
        limits.monthly_limit is not None
        and not already
        and data.selected_count >= limits.monthly_limit
    ):
        return MonthlyLimitReached(limits.monthly_limit)
    cap = _weekly_cap(limits, _mode(limits, mode))
    if cap is not None:
        week = week_of_month(d)
        if _week_count(data, week, exclude=date_str) >= cap:
            return WeeklyLimitReached(week, cap)
    return None


def can_select(
    date_str: str,
    data: VacationData,
    limits: VacationLimits,
    mode: VacationMode | None = None,
) -> bool:
    if data.is_submitted:
        return False
    if data.is_selected(date_str):
        return True
    return can_add(date_str, data, limits, mode) is None


def toggle(
    date_str: str,
    data: VacationData,
    limits: VacationLimits,
    mode: VacationMode | None = None,
) -> ToggleResult:
    if data.is_submitted:
        return ToggleResult(data=data, rejection=AlreadySubmitted())
    _parse_in_month(date_str, data)
    if data.is_selected(date_str):
        # removal stays possible over a tightened limit so users can fix it
        updated = data.with_removed(date_str)
        return ToggleResult(
            data=updated,
            removed=True,
            remaining=remaining(updated, limits, date_str, mode),
        )
    rejection = can_add(date_str, data, limits, mode)
    if rejection is not None:
        return ToggleResult(data=data, rejection=rejection)
    updated = data.with_added(date_str)
    return ToggleResult(
        data=updated,
        added=True,
        remaining=remaining(updated, limits, date_str, mode),
    )


def validate(
    data: VacationData,
    limits: VacationLimits,
    mode: VacationMode | None = None,
) -> ValidationReport:
    counts = weekly_stats(data.selected_dates, data.month) if data.month else {}
    cap = _weekly_cap(limits, _mode(limits, mode))
    violating = sorted(w for w, n in counts.items() if cap is not None and n > cap)
    overflow = 0
    if limits.monthly_limit is not None:
        overflow = max(0, data.selected_count - limits.monthly_limit)
    return ValidationReport(
        is_valid=not violating and overflow == 0,
        violating_weeks=violating,
        weekly_counts=counts,
        monthly_overflow=overflow,
    )


def submit(
    data: VacationData,
    limits: VacationLimits,
    mode: VacationMode | None = None,
) -> SubmitResult:
    if data.is_submitted:
        return SubmitResult(data=data, rejection=AlreadySubmitted())
    report = validate(data, limits, mode)
    rejection: QuotaExceeded | None = None
    if report.violating_weeks:
        rejection = WeeklyLimitExceeded(report.violating_weeks, limits.weekly_limit or 0)
    elif report.monthly_overflow and limits.monthly_limit is not None:
        rejection = MonthlyLimitExceeded(data.selected_count, limits.monthly_limit)
    if rejection is not None:
        return SubmitResult(data=data, rejection=rejection)
    return SubmitResult(data=data.submitted())
