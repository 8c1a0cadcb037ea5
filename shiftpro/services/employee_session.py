"""
Employee-side session: loads the effective vacation policy for the displayed
month, applies the quota engine to date toggles and submission, and reacts
to limit-change events for the month on screen.

User actions and inbound events are serialized by one lock. Remote reads run
outside it and are applied only if their month is still the displayed one
when they complete; otherwise the result is dropped. Requests that act on a
named month hold ``focused(year, month)`` so the month cannot change under
them.
"""

from __future__ import annotations

import asyncio
import collections
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator

from shiftpro.core.exceptions import AlreadySubmitted, AwaitingPublication, DateOutsideMonth
from shiftpro.domain.calendar_math import month_key, parse_date_key, weekly_stats
from shiftpro.domain.models import VacationData, VacationLimits, VacationMode
from shiftpro.services import quota
from shiftpro.services.boss_session import check_month
from shiftpro.services.limits_store import LimitsStore
from shiftpro.services.local_storage import LocalStorage
from shiftpro.services.notifier import LimitsEvent, PublishNotifier
from shiftpro.services.remote import RemoteLimitsSource, fetch_or_none

logger = logging.getLogger(__name__)

MAX_OTHER_MONTH_SIGNALS = 20


class EmployeeSessionController:
    def __init__(
        self,
        employee_id: str,
        store: LimitsStore,
        storage: LocalStorage,
        notifier: PublishNotifier | None = None,
        remote: RemoteLimitsSource | None = None,
        today: date | None = None,
    ) -> None:
        self.employee_id = employee_id
        self._store = store
        self._storage = storage
        self._notifier = notifier
        self._remote = remote
        self._today = today
        self._lock = asyncio.Lock()
        self._turn = asyncio.Lock()

        start = today or date.today()
        self.year = start.year
        self.month = start.month
        self.data = VacationData.empty(self.displayed_month)
        self.limits = VacationLimits.default_for(self.year, self.month)
        self.vacation_mode = VacationMode.MONTHLY
        self.policy_source = "default"
        self.edit_mode = False
        self.last_validation: quota.ValidationReport | None = None
        # last policy the remote returned, per month; dropped on change events
        self._remote_cache: dict[str, VacationLimits] = {}
        self.other_month_signals: collections.deque[LimitsEvent] = collections.deque(
            maxlen=MAX_OTHER_MONTH_SIGNALS
        )

        self._subscription = (
            notifier.subscribe(self.on_notification, name=f"employee:{employee_id}")
            if notifier is not None
            else None
        )

    @property
    def displayed_month(self) -> str:
        return month_key(self.year, self.month)

    @property
    def monthly_limit(self) -> int | None:
        return self.limits.monthly_limit

    @property
    def weekly_limit(self) -> int | None:
        return self.limits.weekly_limit

    @property
    def is_policy_published(self) -> bool:
        return self.limits.is_published

    def close(self) -> None:
        if self._notifier is not None and self._subscription is not None:
            self._notifier.unsubscribe(self._subscription)
            self._subscription = None

    # ── Month context ──────────────────────────────────────────────
    async def _load_or_create_data(self, month: str) -> VacationData:
        data = await self._storage.load_vacation_data(month)
        if data is None:
            data = VacationData.empty(month)
            await self._storage.save_vacation_data(data)
        return data

    async def switch_displayed_month(self, year: int, month: int) -> VacationLimits | None:
        check_month(year, month, self._today)
        async with self._lock:
            data = await self._load_or_create_data(month_key(year, month))
            self.year, self.month = year, month
            self.data = data
            self.limits = VacationLimits.default_for(year, month)
            self.vacation_mode = VacationMode.MONTHLY
            self.policy_source = "default"
            self.edit_mode = False
            self.last_validation = None
        return await self.load_effective_policy(year, month)

    @asynccontextmanager
    async def focused(
        self, year: int, month: int, reload: bool = False
    ) -> AsyncIterator["EmployeeSessionController"]:
        """Hold the session on ``year``/``month`` until the block exits.

        ``reload`` re-reads the policy when no switch was needed.
        """
        async with self._turn:
            if (self.year, self.month) != (year, month):
                await self.switch_displayed_month(year, month)
            elif reload:
                await self.load_effective_policy(year, month)
            yield self

    async def load_effective_policy(
        self, year: int, month: int, remote_first: bool = True
    ) -> VacationLimits | None:
        """Remote-preferred policy load. ``None`` when the result went stale.

        With ``remote_first=False`` the local store is read directly; change
        events originate from it, so it is already current when they arrive.
        """
        key = month_key(year, month)
        limits = await fetch_or_none(self._remote, year, month) if remote_first else None
        source = "remote"
        if limits is not None:
            self._remote_cache[key] = limits
        elif remote_first and key in self._remote_cache:
            limits = self._remote_cache[key]
            source = "cache"
        else:
            limits = await self._store.get(year, month)
            source = "local"
        async with self._lock:
            # compare with the month on screen now, not the one requested
            if key != self.displayed_month:
                logger.info(
                    "Dropping stale policy for %s, now showing %s",
                    key,
                    self.displayed_month,
                )
                return None
            self._apply_policy(limits, source)
            return limits

    def _apply_policy(self, limits: VacationLimits, source: str) -> None:
        self.limits = limits
        self.vacation_mode = VacationMode.for_limits(limits)
        self.policy_source = source
        if not limits.is_published:
            self.edit_mode = False
        logger.debug(
            "Employee %s policy %s from %s: monthly=%s weekly=%s mode=%s published=%s",
            self.employee_id,
            limits.month_key,
            source,
            limits.monthly_limit,
            limits.weekly_limit,
            self.vacation_mode.value,
            limits.is_published,
        )

    # ── Editing ────────────────────────────────────────────────────
    async def _publication_gate(self) -> quota.Rejection | None:
        if self.data.is_submitted:
            return AlreadySubmitted()
        if not await self._store.exists(self.year, self.month):
            return AwaitingPublication(self.displayed_month)
        return None

    async def request_edit(self) -> quota.Rejection | None:
        async with self._lock:
            rejection = await self._publication_gate()
            if rejection is not None:
                logger.info(
                    "Edit refused for %s %s: %s",
                    self.employee_id,
                    self.displayed_month,
                    rejection.reason,
                )
                return rejection
            self.edit_mode = True
            return None

    def _check_in_month(self, date_str: str) -> None:
        d = parse_date_key(date_str)
        if (d.year, d.month) != (self.year, self.month):
            raise DateOutsideMonth(date_str, self.displayed_month)

    async def toggle_date(self, date_str: str) -> quota.ToggleResult:
        self._check_in_month(date_str)
        async with self._lock:
            rejection = await self._publication_gate()
            if rejection is not None:
                return quota.ToggleResult(data=self.data, rejection=rejection)
            result = quota.toggle(date_str, self.data, self.limits, self.vacation_mode)
            if result.accepted:
                # persist first so a failed save leaves memory untouched
                await self._storage.save_vacation_data(result.data)
                self.data = result.data
            return result

    def can_select(self, date_str: str) -> bool:
        return quota.can_select(date_str, self.data, self.limits, self.vacation_mode)

    def remaining(self, date_str: str | None = None) -> quota.RemainingSummary:
        return quota.remaining(self.data, self.limits, date_str, self.vacation_mode)

    def weekly_stats(self) -> dict[int, int]:
        return weekly_stats(self.data.selected_dates, self.displayed_month)

    def validate(self) -> quota.ValidationReport:
        return quota.validate(self.data, self.limits, self.vacation_mode)

    async def submit(self) -> quota.SubmitResult:
        async with self._lock:
            result = quota.submit(self.data, self.limits, self.vacation_mode)
            if not result.accepted:
                return result
            await self._storage.save_vacation_data(result.data)
            self.data = result.data
            self.edit_mode = False
            logger.info(
                "Employee %s submitted %d days for %s",
                self.employee_id,
                result.data.selected_count,
                self.displayed_month,
            )
            return result

    async def clear(self) -> VacationData:
        """Wipe the displayed month's selection, submitted or not."""
        async with self._lock:
            await self._storage.clear_vacation_data(self.displayed_month)
            self.data = VacationData.empty(self.displayed_month)
            self.edit_mode = False
            self.last_validation = None
            logger.warning("Employee %s cleared vacation data for %s", self.employee_id, self.displayed_month)
            return self.data

    # ── Notifications ──────────────────────────────────────────────
    async def on_notification(self, event: LimitsEvent) -> bool:
        """Reload and re-validate when ``event`` concerns the displayed month."""
        self._remote_cache.pop(event.target_month, None)
        if event.target_month != self.displayed_month:
            self.other_month_signals.append(event)
            logger.info(
                "Employee %s noted %s for %s (showing %s)",
                self.employee_id,
                event.kind.value,
                event.target_month,
                self.displayed_month,
            )
            return False
        year, month = self.year, self.month
        if await self.load_effective_policy(year, month, remote_first=False) is None:
            return False
        async with self._lock:
            self.last_validation = self.validate()
            if not self.last_validation.is_valid:
                logger.warning(
                    "Employee %s selection for %s no longer fits the rules: weeks=%s overflow=%d",
                    self.employee_id,
                    self.displayed_month,
                    self.last_validation.violating_weeks,
                    self.last_validation.monthly_overflow,
                )
        return True
