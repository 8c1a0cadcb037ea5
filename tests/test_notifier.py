"""Tests for limit-change broadcasting."""

import pytest

from shiftpro.core.exceptions import PersistenceError
from shiftpro.domain.models import VacationLimits, VacationType
from shiftpro.services.limits_store import LimitsStore
from shiftpro.services.notifier import EventKind, LimitsEvent, PublishNotifier
from shiftpro.storage.kv import InMemoryKeyValueStore


def _limits(month=8, **kw) -> VacationLimits:
    return VacationLimits(year=2025, month=month, is_published=True, monthly_limit=4, **kw)


@pytest.mark.asyncio
async def test_first_publish_then_update(notifier: PublishNotifier):
    received: list[LimitsEvent] = []
    notifier.subscribe(received.append)

    first = await notifier.publish(_limits())
    second = await notifier.publish(_limits(weekly_limit=1))

    assert first.kind is EventKind.PUBLISHED
    assert second.kind is EventKind.UPDATED
    assert [e.kind for e in received] == [EventKind.PUBLISHED, EventKind.UPDATED]
    assert received[0].target_month == "2025-08"
    assert received[0].vacation_type is VacationType.MONTHLY


@pytest.mark.asyncio
async def test_every_subscriber_gets_every_month(notifier: PublishNotifier):
    a: list[LimitsEvent] = []
    b: list[LimitsEvent] = []
    notifier.subscribe(a.append)
    notifier.subscribe(b.append)

    await notifier.publish(_limits(8))
    await notifier.publish(_limits(9))

    assert [e.target_month for e in a] == ["2025-08", "2025-09"]
    assert [e.target_month for e in b] == ["2025-08", "2025-09"]


@pytest.mark.asyncio
async def test_async_handlers_awaited_and_failures_isolated(notifier: PublishNotifier):
    seen: list[str] = []

    async def failing(event: LimitsEvent) -> None:
        raise RuntimeError("boom")

    async def recording(event: LimitsEvent) -> None:
        seen.append(event.target_month)

    notifier.subscribe(failing, name="failing")
    notifier.subscribe(recording, name="recording")
    await notifier.publish(_limits())
    assert seen == ["2025-08"]


@pytest.mark.asyncio
async def test_unsubscribe(notifier: PublishNotifier):
    received: list[LimitsEvent] = []
    sub = notifier.subscribe(received.append)
    assert notifier.subscriber_count == 1
    notifier.unsubscribe(sub)
    notifier.unsubscribe(sub)
    await notifier.publish(_limits())
    assert received == []
    assert notifier.subscriber_count == 0


@pytest.mark.asyncio
async def test_unpublish_and_clear_all(notifier: PublishNotifier, store: LimitsStore):
    received: list[LimitsEvent] = []
    notifier.subscribe(received.append)
    await notifier.publish(_limits(8))
    await notifier.publish(_limits(9))

    deleted = await notifier.unpublish(2025, 8)
    assert deleted.kind is EventKind.DELETED
    assert await store.exists(2025, 8) is False

    cleared = await notifier.clear_all()
    assert [(e.kind, e.target_month) for e in cleared] == [(EventKind.CLEARED, "2025-09")]
    assert received[-1].kind is EventKind.CLEARED


@pytest.mark.asyncio
async def test_failed_save_emits_nothing():
    class BrokenKV(InMemoryKeyValueStore):
        async def set(self, key: str, value: bytes) -> None:
            raise PersistenceError("write refused")

    notifier = PublishNotifier(LimitsStore(BrokenKV()))
    received: list[LimitsEvent] = []
    notifier.subscribe(received.append)
    with pytest.raises(PersistenceError):
        await notifier.publish(_limits())
    assert received == []
