"""
PublishNotifier — in-process broadcast of vacation-limit changes.

Every subscriber receives every event; deciding whether an event concerns
the month it is looking at is the subscriber's job. Broadcasts are
serialized, so events for one month reach subscribers in publish order.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Union

from shiftpro.domain.calendar_math import month_key
from shiftpro.domain.models import VacationLimits, VacationType
from shiftpro.services.limits_store import LimitsStore

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    PUBLISHED = "published"
    UPDATED = "updated"
    DELETED = "deleted"
    CLEARED = "cleared"


@dataclass(frozen=True)
class LimitsEvent:
    kind: EventKind
    target_month: str
    vacation_type: VacationType | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[LimitsEvent], Union[Awaitable[None], None]]


@dataclass(frozen=True, eq=False)
class Subscription:
    handler: Handler
    name: str


class PublishNotifier:
    def __init__(self, store: LimitsStore) -> None:
        self._store = store
        self._subscriptions: list[Subscription] = []
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handler: Handler, name: str | None = None) -> Subscription:
        subscription = Subscription(handler=handler, name=name or getattr(handler, "__qualname__", "handler"))
        self._subscriptions.append(subscription)
        logger.debug("Subscribed %s", subscription.name)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            return

    async def _broadcast(self, event: LimitsEvent) -> None:
        logger.info("Broadcasting %s for %s", event.kind.value, event.target_month)
        for subscription in list(self._subscriptions):
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Subscriber %s failed on %s %s",
                    subscription.name,
                    event.kind.value,
                    event.target_month,
                )

    async def publish(self, limits: VacationLimits) -> LimitsEvent:
        """Persist ``limits`` and announce it. ``PersistenceError`` propagates."""
        async with self._lock:
            had_published = await self._store.exists(limits.year, limits.month)
            await self._store.save(limits)
            event = LimitsEvent(
                kind=EventKind.UPDATED if had_published else EventKind.PUBLISHED,
                target_month=limits.month_key,
                vacation_type=limits.vacation_type,
            )
            await self._broadcast(event)
            return event

    async def unpublish(self, year: int, month: int) -> LimitsEvent:
        async with self._lock:
            await self._store.delete(year, month)
            event = LimitsEvent(kind=EventKind.DELETED, target_month=month_key(year, month))
            await self._broadcast(event)
            return event

    async def clear_all(self) -> list[LimitsEvent]:
        async with self._lock:
            removed = await self._store.clear_all()
            events = [
                LimitsEvent(kind=EventKind.CLEARED, target_month=month_key(year, month))
                for year, month in removed
            ]
            for event in events:
                await self._broadcast(event)
            return events
