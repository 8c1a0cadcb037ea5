"""Pydantic schemas for the calendar, limits, Boss and Employee endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from shiftpro.domain.calendar_math import parse_date_key
from shiftpro.domain.models import ScheduleMode, VacationLimits, VacationType


def _date_key(v: str) -> str:
    v = v.strip()
    parse_date_key(v)
    return v


# ── Calendar ────────────────────────────────────────────────────────
class DayCellRead(BaseModel):
    date: str
    day: int
    within_displayed_month: bool
    week_of_month: int | None = None


class MonthGridResponse(BaseModel):
    month: str
    weeks_in_month: int
    cells: list[DayCellRead]


class WeekRangeResponse(BaseModel):
    date: str
    start: str
    end: str
    display: str


class WeeklyStatsRequest(BaseModel):
    dates: list[str] = []


class WeekBucket(BaseModel):
    week: int
    count: int
    range: str


class WeeklyStatsResponse(BaseModel):
    month: str
    weeks: list[WeekBucket]


# ── Limits ──────────────────────────────────────────────────────────
class LimitsLookupResponse(BaseModel):
    month: str
    state: str
    limits: VacationLimits | None = None


# ── Boss ────────────────────────────────────────────────────────────
class VacationSettingCreate(BaseModel):
    type: VacationType
    allowed_days: int = Field(ge=0, le=31)
    year: int
    month: int = Field(ge=1, le=12)


class PublishResponse(BaseModel):
    success: bool = True
    event: str
    month: str
    state: str
    limits: VacationLimits | None = None


class ClearLimitsResponse(BaseModel):
    success: bool = True
    cleared_months: list[str]


class ScheduleCreate(BaseModel):
    mode: ScheduleMode
    year: int
    month: int = Field(ge=1, le=12)
    dates: list[str] = []

    @field_validator("dates")
    @classmethod
    def _dates(cls, v: list[str]) -> list[str]:
        return [_date_key(d) for d in v]


class BossStatusResponse(BaseModel):
    month: str
    state: str
    vacation_published: bool
    schedule_published: bool
    created_at: datetime


class SyncFlushResponse(BaseModel):
    delivered: int
    pending: int


# ── Employee ────────────────────────────────────────────────────────
class ToggleRequest(BaseModel):
    date: str

    @field_validator("date")
    @classmethod
    def _date(cls, v: str) -> str:
        return _date_key(v)


class EmployeeVacationResponse(BaseModel):
    month: str
    selected_dates: list[str]
    is_submitted: bool
    edit_mode: bool
    is_policy_published: bool
    vacation_type: VacationType
    vacation_mode: str
    monthly_limit: int | None = None
    weekly_limit: int | None = None
    monthly_remaining: int | None = None
    weekly_stats: dict[int, int] = {}
    violating_weeks: list[int] = []


class ToggleResponse(BaseModel):
    success: bool = True
    date: str
    added: bool
    removed: bool
    monthly_remaining: int | None = None
    weekly_remaining: int | None = None
    week: int | None = None
    vacation: EmployeeVacationResponse


# ── Health ──────────────────────────────────────────────────────────
class HealthResponse(BaseModel):
    db: bool
    redis: bool
    version: str
