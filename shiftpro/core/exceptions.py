"""
Error taxonomy and global exception handlers.

Business-rule rejections (quota, submission, publication gates) are plain
values produced by the quota engine and the session controllers; the API
layer raises them so the handlers below can turn them into responses.
Infrastructure failures (``PersistenceError``) are retryable.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ShiftProError(Exception):
    """Base class for every error raised by the service."""

    status_code = 400
    reason = "error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return self.reason

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"reason": self.reason, "message": self.message}


# ── Infrastructure ──────────────────────────────────────────────────
class PersistenceError(ShiftProError):
    """Serialization or store failure. The initiating action may be retried."""

    status_code = 503
    reason = "persistence_error"

    def default_message(self) -> str:
        return "Could not save data, please retry"


# ── Expected, informational ─────────────────────────────────────────
class PolicyNotFound(ShiftProError):
    status_code = 404
    reason = "policy_not_found"

    def __init__(self, month_key: str) -> None:
        self.month_key = month_key
        super().__init__(f"No vacation policy stored for {month_key}")


class AwaitingPublication(ShiftProError):
    status_code = 409
    reason = "awaiting_publication"

    def __init__(self, month_key: str) -> None:
        self.month_key = month_key
        super().__init__(f"Waiting for the vacation rules of {month_key} to be published")


class AlreadySubmitted(ShiftProError):
    status_code = 409
    reason = "already_submitted"

    def default_message(self) -> str:
        return "Vacation selection has already been submitted"


# ── Quota rejections ────────────────────────────────────────────────
class QuotaExceeded(ShiftProError):
    status_code = 409
    reason = "quota_exceeded"


class MonthlyLimitReached(QuotaExceeded):
    reason = "monthly_limit_reached"

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Monthly vacation limit of {limit} days reached")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "limit": self.limit}


class WeeklyLimitReached(QuotaExceeded):
    reason = "weekly_limit_reached"

    def __init__(self, week: int, limit: int) -> None:
        self.week = week
        self.limit = limit
        super().__init__(f"Week {week} already has the maximum of {limit} vacation days")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "week": self.week, "limit": self.limit}


class WeeklyLimitExceeded(QuotaExceeded):
    """Submission blocked because some weeks are over the weekly cap."""

    reason = "weekly_limit_exceeded"

    def __init__(self, weeks: list[int], limit: int) -> None:
        self.weeks = sorted(weeks)
        self.limit = limit
        listed = ", ".join(str(w) for w in self.weeks)
        super().__init__(f"Weeks {listed} exceed the weekly limit of {limit} days")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "weeks": self.weeks, "limit": self.limit}


class MonthlyLimitExceeded(QuotaExceeded):
    """Submission blocked because the selection is over the monthly cap."""

    reason = "monthly_limit_exceeded"

    def __init__(self, selected: int, limit: int) -> None:
        self.selected = selected
        self.limit = limit
        super().__init__(f"{selected} days selected, the monthly limit is {limit}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "selected": self.selected, "limit": self.limit}


# ── Input validation ────────────────────────────────────────────────
class MalformedDateKey(ShiftProError, ValueError):
    status_code = 422
    reason = "malformed_date_key"

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Not a valid date key: {value!r}")


class DateOutsideMonth(ShiftProError, ValueError):
    status_code = 422
    reason = "date_outside_month"

    def __init__(self, date_str: str, month_key: str) -> None:
        self.date_str = date_str
        self.month_key = month_key
        super().__init__(f"{date_str} is not a day of {month_key}")


class InvalidMonth(ShiftProError, ValueError):
    status_code = 422
    reason = "invalid_month"

    def __init__(self, year: int, month: int) -> None:
        self.year = year
        self.month = month
        super().__init__(f"Month {year}-{month} is outside the accepted range")


# ── Handlers ────────────────────────────────────────────────────────
async def _shiftpro_error_handler(_request: Request, exc: ShiftProError) -> JSONResponse:
    if isinstance(exc, PersistenceError):
        logger.error("Persistence failure: %s", exc, exc_info=exc.__cause__ is not None)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.to_dict(), "success": False},
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(ShiftProError, _shiftpro_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
