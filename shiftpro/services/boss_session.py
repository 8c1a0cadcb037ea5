"""
Boss-side session: authoring, publishing and withdrawing vacation rules for
the displayed month, plus schedule publication and publish-status readback.

State per displayed month::

    NO_POLICY -> DRAFTED -> PUBLISHED -> UNPUBLISHED | REPUBLISHED

A failed save leaves both the stored record and the controller state as they
were; the ``PersistenceError`` reaches the caller so the action can be
retried. The ``BossPublishStatus`` record is a readback cache rebuilt from the
stored policy and schedule, so failing to write it is logged, not raised.

Callers that act on a specific month hold ``focused(year, month)`` for the
whole action; other requests cannot move the session in between.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator

from shiftpro.core.config import settings
from shiftpro.core.exceptions import InvalidMonth, PersistenceError
from shiftpro.domain.calendar_math import month_key, parse_month_key
from shiftpro.domain.models import (
    BossPublishStatus,
    PolicyState,
    ScheduleData,
    VacationLimits,
    VacationSetting,
)
from shiftpro.services.limits_store import LimitsStore
from shiftpro.services.local_storage import LocalStorage
from shiftpro.services.notifier import LimitsEvent, PublishNotifier
from shiftpro.services.remote import OfflineSyncQueue, PendingSync, RemoteLimitsSource, SyncOp

logger = logging.getLogger(__name__)


class BossState(str, enum.Enum):
    NO_POLICY = "no_policy"
    DRAFTED = "drafted"
    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"
    REPUBLISHED = "republished"


def check_month(year: int, month: int, today: date | None = None) -> None:
    """Reject months outside 1..12 or outside the configured year window."""
    current = (today or date.today()).year
    if not 1 <= month <= 12:
        raise InvalidMonth(year, month)
    if not (
        current - settings.MONTH_WINDOW_YEARS_BEFORE
        <= year
        <= current + settings.MONTH_WINDOW_YEARS_AFTER
    ):
        raise InvalidMonth(year, month)


class BossSessionController:
    def __init__(
        self,
        store: LimitsStore,
        notifier: PublishNotifier,
        storage: LocalStorage,
        remote: RemoteLimitsSource | None = None,
        offline_queue: OfflineSyncQueue | None = None,
        org_id: str | None = None,
        today: date | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._storage = storage
        self._remote = remote
        self._offline_queue = offline_queue
        self.org_id = org_id or settings.ORG_ID
        self._lock = asyncio.Lock()
        # held across a whole month-scoped action, see focused()
        self._turn = asyncio.Lock()
        self._today = today

        start = today or date.today()
        self.year = start.year
        self.month = start.month
        self.state = BossState.NO_POLICY
        self.vacation_published = False
        self.schedule_published = False

    @property
    def displayed_month(self) -> str:
        return month_key(self.year, self.month)

    @property
    def status(self) -> BossPublishStatus:
        return BossPublishStatus(
            vacation_published=self.vacation_published,
            schedule_published=self.schedule_published,
            month=self.displayed_month,
        )

    # ── Month context ──────────────────────────────────────────────
    async def switch_displayed_month(self, year: int, month: int) -> BossPublishStatus:
        check_month(year, month, self._today)
        async with self._lock:
            self.year, self.month = year, month
            # nothing carries over from the previous month
            self.state = BossState.NO_POLICY
            self.vacation_published = False
            self.schedule_published = False
            await self._reload_status()
            return self.status

    @asynccontextmanager
    async def focused(
        self, year: int | None = None, month: int | None = None, refresh: bool = False
    ) -> AsyncIterator["BossSessionController"]:
        """Hold the session on ``year``/``month`` until the block exits.

        Without a month the session stays where it is. ``refresh`` re-reads
        the status when no switch was needed.
        """
        async with self._turn:
            if year is not None and month is not None and (self.year, self.month) != (year, month):
                await self.switch_displayed_month(year, month)
            elif refresh:
                await self.refresh()
            yield self

    async def _reload_status(self) -> None:
        cached = await self._storage.load_publish_status(self.displayed_month)

        # stored policy and schedule are authoritative over the cached flags
        lookup = await self._store.lookup(self.year, self.month)
        schedule = await self._storage.load_schedule(self.displayed_month)
        self.vacation_published = lookup.is_published
        self.schedule_published = schedule is not None
        self.state = {
            PolicyState.PUBLISHED: BossState.PUBLISHED,
            PolicyState.DRAFT_EXISTS: BossState.DRAFTED,
            PolicyState.NO_POLICY: BossState.NO_POLICY,
        }[lookup.state]
        if (
            cached is None
            or cached.vacation_published != self.vacation_published
            or cached.schedule_published != self.schedule_published
        ):
            await self._save_status()
        logger.debug(
            "Boss status %s: vacation=%s schedule=%s",
            self.displayed_month,
            self.vacation_published,
            self.schedule_published,
        )

    async def refresh(self) -> BossPublishStatus:
        async with self._lock:
            await self._reload_status()
            return self.status

    async def _save_status(self) -> None:
        try:
            await self._storage.save_publish_status(self.status)
        except PersistenceError as exc:
            logger.warning("Could not cache publish status for %s: %s", self.displayed_month, exc)

    # ── Vacation rules ─────────────────────────────────────────────
    def _target(self, setting: VacationSetting) -> None:
        if (setting.year, setting.month) != (self.year, self.month):
            raise InvalidMonth(setting.year, setting.month)

    async def publish_vacation(self, setting: VacationSetting) -> LimitsEvent:
        """Publish ``setting`` for the displayed month and notify subscribers."""
        limits = setting.to_limits(org_id=self.org_id)
        async with self._lock:
            self._target(setting)
            was_public_before = self.state in (
                BossState.PUBLISHED,
                BossState.REPUBLISHED,
                BossState.UNPUBLISHED,
            )
            event = await self._notifier.publish(limits)
            self.state = BossState.REPUBLISHED if was_public_before else BossState.PUBLISHED
            self.vacation_published = True
            await self._save_status()
            logger.info(
                "Published %s vacation rules for %s (%s)",
                limits.vacation_type.value,
                limits.month_key,
                event.kind.value,
            )
        await self._push_remote(limits)
        return event

    async def save_draft(self, setting: VacationSetting) -> VacationLimits:
        """Store the rules without publishing them; Employees keep waiting."""
        draft = setting.to_limits(org_id=self.org_id).model_copy(
            update={"is_published": False, "published_at": None}
        )
        async with self._lock:
            self._target(setting)
            await self._store.save(draft)
            self.state = BossState.DRAFTED
            self.vacation_published = False
            await self._save_status()
        return draft

    async def unpublish(self) -> LimitsEvent:
        async with self._lock:
            event = await self._notifier.unpublish(self.year, self.month)
            self.state = BossState.UNPUBLISHED
            self.vacation_published = False
            await self._save_status()
            logger.info("Unpublished vacation rules for %s", self.displayed_month)
            year, month = self.year, self.month
        await self._delete_remote(year, month)
        return event

    async def clear_all_limits(self) -> list[LimitsEvent]:
        """Administrative reset of every month's rules."""
        async with self._lock:
            events = await self._notifier.clear_all()
            self.state = BossState.NO_POLICY
            self.vacation_published = False
            await self._save_status()
        for event in events:
            year, month = parse_month_key(event.target_month)
            await self._delete_remote(year, month)
        return events

    # ── Schedule ───────────────────────────────────────────────────
    async def publish_schedule(self, schedule: ScheduleData) -> BossPublishStatus:
        async with self._lock:
            if schedule.month != self.displayed_month:
                year, month = parse_month_key(schedule.month)
                raise InvalidMonth(year, month)
            await self._storage.save_schedule(schedule)
            self.schedule_published = True
            await self._save_status()
            logger.info(
                "Published %s schedule for %s (%d days)",
                schedule.mode.value,
                schedule.month,
                len(schedule.selected_dates),
            )
            return self.status

    async def unpublish_schedule(self) -> BossPublishStatus:
        async with self._lock:
            await self._storage.clear_schedule(self.displayed_month)
            self.schedule_published = False
            await self._save_status()
            logger.info("Unpublished schedule for %s", self.displayed_month)
            return self.status

    # ── Remote sync ────────────────────────────────────────────────
    async def _push_remote(self, limits: VacationLimits) -> None:
        if self._remote is None:
            return
        try:
            await self._remote.push_limits(limits)
        except Exception as exc:
            logger.warning("Remote sync failed for %s: %s", limits.month_key, exc)
            await self._enqueue(
                PendingSync(op=SyncOp.PUSH, year=limits.year, month=limits.month, limits=limits)
            )

    async def _delete_remote(self, year: int, month: int) -> None:
        if self._remote is None:
            return
        try:
            await self._remote.delete_limits(year, month)
        except Exception as exc:
            logger.warning("Remote delete failed for %s: %s", month_key(year, month), exc)
            await self._enqueue(PendingSync(op=SyncOp.DELETE, year=year, month=month))

    async def _enqueue(self, item: PendingSync) -> None:
        if self._offline_queue is not None:
            await self._offline_queue.enqueue(item)

    async def flush_offline_queue(self) -> int:
        if self._remote is None or self._offline_queue is None:
            return 0
        return await self._offline_queue.process(self._remote)
