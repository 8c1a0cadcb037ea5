"""
Calendar arithmetic used for weekly quota bucketing and the month grid.

Week-of-month convention (fixed, locale independent):

- weeks run Sunday..Saturday;
- week 1 is the week that contains day 1 of the month, even when it is a
  partial week;
- ``week = (day + offset - 1) // 7 + 1`` where ``offset`` is the Sunday-based
  column of day 1 (Sun=0 .. Sat=6).

For 2025-08 (day 1 is a Friday): 08-01..08-02 -> week 1, 08-03..08-09 ->
week 2, ..., 08-31 -> week 6. Week ranges for display, on the other hand,
are Monday..Sunday.
"""

from __future__ import annotations

import calendar
from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from shiftpro.core.exceptions import MalformedDateKey

GRID_CELLS = 42


@dataclass(frozen=True)
class WeekRange:
    start: date
    end: date

    def display(self) -> str:
        return f"{self.start.month}/{self.start.day}-{self.end.month}/{self.end.day}"


@dataclass(frozen=True)
class DayCell:
    date: date
    within_displayed_month: bool

    @property
    def key(self) -> str:
        return date_key(self.date)


# ── Keys ────────────────────────────────────────────────────────────
def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def date_key(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def parse_month_key(value: str) -> tuple[int, int]:
    """``"2025-08"`` -> ``(2025, 8)``."""
    try:
        year_s, month_s = value.split("-")
        if len(year_s) != 4 or len(month_s) != 2:
            raise ValueError(value)
        year, month = int(year_s), int(month_s)
    except (AttributeError, ValueError):
        raise MalformedDateKey(value) from None
    if not 1 <= month <= 12:
        raise MalformedDateKey(value)
    return year, month


def parse_date_key(value: str) -> date:
    """Parse a zero-padded ``YYYY-MM-DD`` string."""
    if not isinstance(value, str) or len(value) != 10:
        raise MalformedDateKey(value)
    try:
        year, month, day = (int(p) for p in value.split("-"))
        return date(year, month, day)
    except ValueError:
        raise MalformedDateKey(value) from None


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


# ── Weeks ───────────────────────────────────────────────────────────
def _sunday_column(d: date) -> int:
    # date.weekday(): Mon=0 .. Sun=6
    return (d.weekday() + 1) % 7


def week_of_month(d: date) -> int:
    offset = _sunday_column(d.replace(day=1))
    return (d.day + offset - 1) // 7 + 1


def weeks_in_month(year: int, month: int) -> int:
    last_day = calendar.monthrange(year, month)[1]
    return week_of_month(date(year, month, last_day))


def week_range(d: date) -> WeekRange:
    start = d - timedelta(days=d.weekday())
    return WeekRange(start=start, end=start + timedelta(days=6))


def week_dates(week: int, year: int, month: int) -> list[date]:
    """All in-month dates that fall into the given week-of-month bucket."""
    last_day = calendar.monthrange(year, month)[1]
    return [
        date(year, month, day)
        for day in range(1, last_day + 1)
        if week_of_month(date(year, month, day)) == week
    ]


def format_week_range(week: int, month: str) -> str:
    """``"M/d-M/d"`` for the in-month days of a week bucket, ``""`` if empty."""
    try:
        year, mon = parse_month_key(month)
    except MalformedDateKey:
        return ""
    days = week_dates(week, year, mon)
    if not days:
        return ""
    return WeekRange(start=days[0], end=days[-1]).display()


def weekly_stats(date_strings: Iterable[str], month: str) -> dict[int, int]:
    """Tally selected dates per week-of-month.

    Malformed strings and dates outside ``month`` are skipped.
    """
    year, mon = parse_month_key(month)
    counts: Counter[int] = Counter()
    for value in set(date_strings):
        try:
            d = parse_date_key(value)
        except MalformedDateKey:
            continue
        if d.year != year or d.month != mon:
            continue
        counts[week_of_month(d)] += 1
    return dict(sorted(counts.items()))


def week_count(date_strings: Iterable[str], week: int, month: str) -> int:
    return weekly_stats(date_strings, month).get(week, 0)


# ── Month grid ──────────────────────────────────────────────────────
def days_grid(year: int, month: int) -> list[DayCell]:
    """Six Sunday-first weeks (42 cells) covering the displayed month."""
    first = date(year, month, 1)
    # leading days from the previous month fill the columns before day 1
    start = first - timedelta(days=_sunday_column(first))
    return [
        DayCell(
            date=start + timedelta(days=i),
            within_displayed_month=(start + timedelta(days=i)).month == month,
        )
        for i in range(GRID_CELLS)
    ]
