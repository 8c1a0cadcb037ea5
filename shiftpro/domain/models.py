"""
Canonical vacation entities shared by the Boss and Employee sides.

Every value here is an immutable pydantic model; "mutations" return a new
instance. JSON produced by ``model_dump_json`` is the stored representation.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_serializer, field_validator

from shiftpro.core.config import settings
from shiftpro.domain.calendar_math import month_key, parse_date_key, parse_month_key


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VacationType(str, enum.Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    FLEXIBLE = "flexible"


class VacationMode(str, enum.Enum):
    """How the Employee side applies a policy."""

    MONTHLY = "monthly"
    WEEKLY = "weekly"
    MONTHLY_WITH_WEEKLY_LIMIT = "monthlyWithWeeklyLimit"

    @property
    def enforces_weekly(self) -> bool:
        return self is not VacationMode.MONTHLY

    @classmethod
    def for_limits(cls, limits: "VacationLimits") -> "VacationMode":
        """Only ``weekly`` policies enforce the weekly cap by default.

        ``flexible`` applies as ``monthly``; ``MONTHLY_WITH_WEEKLY_LIMIT`` is
        only used when a caller asks for it explicitly.
        """
        if limits.vacation_type is VacationType.WEEKLY:
            return cls.WEEKLY
        return cls.MONTHLY


class ScheduleMode(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"


# ── Policy ──────────────────────────────────────────────────────────
class VacationLimits(BaseModel):
    org_id: str = Field(default_factory=lambda: settings.ORG_ID)
    year: int
    month: int = Field(ge=1, le=12)
    vacation_type: VacationType = VacationType.MONTHLY
    monthly_limit: int | None = Field(default=None, ge=0)
    weekly_limit: int | None = Field(default=None, ge=0)
    is_published: bool = False
    published_at: datetime | None = None

    model_config = {"frozen": True}

    @property
    def month_key(self) -> str:
        return month_key(self.year, self.month)

    @property
    def key(self) -> tuple[int, int]:
        return (self.year, self.month)

    @classmethod
    def default_for(cls, year: int, month: int) -> "VacationLimits":
        """Unpublished fallback; its numbers are not authoritative."""
        return cls(
            year=year,
            month=month,
            vacation_type=VacationType.MONTHLY,
            monthly_limit=settings.DEFAULT_MONTHLY_LIMIT,
            weekly_limit=settings.DEFAULT_WEEKLY_LIMIT,
            is_published=False,
        )


class VacationSetting(BaseModel):
    """Boss authoring input. Only exists to be published."""

    type: VacationType
    allowed_days: int = Field(ge=0)
    year: int
    month: int = Field(ge=1, le=12)
    publish_date: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    def to_limits(self, org_id: str | None = None) -> VacationLimits:
        if self.type is VacationType.WEEKLY:
            monthly_limit, weekly_limit = None, self.allowed_days
        else:
            monthly_limit, weekly_limit = self.allowed_days, settings.SETTING_WEEKLY_FALLBACK
        return VacationLimits(
            org_id=org_id or settings.ORG_ID,
            year=self.year,
            month=self.month,
            vacation_type=self.type,
            monthly_limit=monthly_limit,
            weekly_limit=weekly_limit,
            is_published=True,
            published_at=self.publish_date,
        )


# ── Employee selection ──────────────────────────────────────────────
class VacationData(BaseModel):
    selected_dates: frozenset[str] = frozenset()
    is_submitted: bool = False
    month: str = ""

    model_config = {"frozen": True}

    @field_validator("selected_dates", mode="before")
    @classmethod
    def _dates(cls, v: object) -> object:
        if isinstance(v, (list, tuple, set, frozenset)):
            for item in v:
                parse_date_key(item)
        return v

    @field_serializer("selected_dates")
    def _sorted_dates(self, v: frozenset[str]) -> list[str]:
        return sorted(v)

    @classmethod
    def empty(cls, month: str) -> "VacationData":
        parse_month_key(month)
        return cls(month=month)

    @property
    def selected_count(self) -> int:
        return len(self.selected_dates)

    def is_selected(self, date_str: str) -> bool:
        return date_str in self.selected_dates

    def with_added(self, date_str: str) -> "VacationData":
        return self.model_copy(update={"selected_dates": self.selected_dates | {date_str}})

    def with_removed(self, date_str: str) -> "VacationData":
        return self.model_copy(update={"selected_dates": self.selected_dates - {date_str}})

    def submitted(self) -> "VacationData":
        return self.model_copy(update={"is_submitted": True})


# ── Boss readback / schedule ────────────────────────────────────────
class BossPublishStatus(BaseModel):
    vacation_published: bool = False
    schedule_published: bool = False
    month: str
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}


class ScheduleData(BaseModel):
    mode: ScheduleMode
    selected_dates: frozenset[str] = frozenset()
    month: str

    model_config = {"frozen": True}

    @field_serializer("selected_dates")
    def _sorted_dates(self, v: frozenset[str]) -> list[str]:
        return sorted(v)


# ── Lookup result ───────────────────────────────────────────────────
class PolicyState(str, enum.Enum):
    PUBLISHED = "published"
    DRAFT_EXISTS = "draft_exists"
    NO_POLICY = "no_policy"


@dataclass(frozen=True)
class PolicyLookup:
    state: PolicyState
    limits: VacationLimits | None = None

    @classmethod
    def of(cls, limits: VacationLimits | None) -> "PolicyLookup":
        if limits is None:
            return cls(PolicyState.NO_POLICY)
        if limits.is_published:
            return cls(PolicyState.PUBLISHED, limits)
        return cls(PolicyState.DRAFT_EXISTS, limits)

    @property
    def is_published(self) -> bool:
        return self.state is PolicyState.PUBLISHED
