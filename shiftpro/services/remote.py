"""
Remote (cross-device) limits source and the offline sync queue.

The remote copy is best-effort: reads that fail or time out count as a miss
and callers fall back to the local ``LimitsStore``; writes that fail are
parked on the ``OfflineSyncQueue`` and retried later.
"""

from __future__ import annotations

import abc
import asyncio
import enum
import logging

from pydantic import BaseModel, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from shiftpro.core.config import settings
from shiftpro.core.exceptions import PersistenceError
from shiftpro.domain.calendar_math import month_key
from shiftpro.domain.models import VacationLimits
from shiftpro.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

OFFLINE_QUEUE_KEY = "OfflineQueue"


class RemoteUnavailable(Exception):
    """The remote source could not be reached or rejected the call."""


class RemoteLimitsSource(abc.ABC):
    @abc.abstractmethod
    async def fetch_limits(self, year: int, month: int) -> VacationLimits | None: ...

    @abc.abstractmethod
    async def push_limits(self, limits: VacationLimits) -> None: ...

    @abc.abstractmethod
    async def delete_limits(self, year: int, month: int) -> None: ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


async def fetch_or_none(
    remote: RemoteLimitsSource | None,
    year: int,
    month: int,
    timeout: float | None = None,
) -> VacationLimits | None:
    """Remote read that never raises; any failure or timeout is a miss."""
    if remote is None:
        return None
    timeout = settings.REMOTE_FETCH_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(remote.fetch_limits(year, month), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Remote fetch for %s timed out", month_key(year, month))
    except Exception as exc:
        logger.warning("Remote fetch for %s failed: %s", month_key(year, month), exc)
    return None


class InMemoryRemoteLimitsSource(RemoteLimitsSource):
    """Process-local stand-in for the cross-device store."""

    def __init__(self) -> None:
        self._records: dict[tuple[int, int], VacationLimits] = {}

    async def fetch_limits(self, year: int, month: int) -> VacationLimits | None:
        return self._records.get((year, month))

    async def push_limits(self, limits: VacationLimits) -> None:
        self._records[limits.key] = limits

    async def delete_limits(self, year: int, month: int) -> None:
        self._records.pop((year, month), None)


class RedisRemoteLimitsSource(RemoteLimitsSource):
    """Limits stored as JSON under ``vacation_rules:{org_id}:{YYYY-MM}``."""

    def __init__(self, client: Redis, org_id: str | None = None) -> None:
        self._client = client
        self._org_id = org_id or settings.ORG_ID

    @classmethod
    def from_url(cls, url: str, org_id: str | None = None) -> "RedisRemoteLimitsSource":
        return cls(Redis.from_url(url), org_id=org_id)

    def _key(self, year: int, month: int) -> str:
        return f"vacation_rules:{self._org_id}:{month_key(year, month)}"

    async def fetch_limits(self, year: int, month: int) -> VacationLimits | None:
        try:
            raw = await self._client.get(self._key(year, month))
        except RedisError as exc:
            raise RemoteUnavailable(str(exc)) from exc
        if raw is None:
            return None
        try:
            return VacationLimits.model_validate_json(raw)
        except ValidationError:
            logger.warning("Unreadable remote limits for %s", month_key(year, month))
            return None

    async def push_limits(self, limits: VacationLimits) -> None:
        try:
            await self._client.set(self._key(limits.year, limits.month), limits.model_dump_json())
        except RedisError as exc:
            raise RemoteUnavailable(str(exc)) from exc

    async def delete_limits(self, year: int, month: int) -> None:
        try:
            await self._client.delete(self._key(year, month))
        except RedisError as exc:
            raise RemoteUnavailable(str(exc)) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            logger.error("Health check Redis failure: %s", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()


# ── Offline queue ───────────────────────────────────────────────────
class SyncOp(str, enum.Enum):
    PUSH = "push"
    DELETE = "delete"


class PendingSync(BaseModel):
    op: SyncOp
    year: int
    month: int
    limits: VacationLimits | None = None


class _QueueFile(BaseModel):
    items: list[PendingSync] = []


class OfflineSyncQueue:
    """Remote writes that failed, at most one pending entry per month."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def pending(self) -> list[PendingSync]:
        raw = await self._kv.get(OFFLINE_QUEUE_KEY)
        if raw is None:
            return []
        try:
            return _QueueFile.model_validate_json(raw).items
        except ValidationError:
            logger.warning("Offline queue unreadable, starting empty")
            return []

    async def _write(self, items: list[PendingSync]) -> None:
        if not items:
            await self._kv.remove(OFFLINE_QUEUE_KEY)
            return
        try:
            payload = _QueueFile(items=items).model_dump_json().encode("utf-8")
        except (ValueError, TypeError) as exc:
            raise PersistenceError("Could not serialize offline queue") from exc
        await self._kv.set(OFFLINE_QUEUE_KEY, payload)

    async def enqueue(self, item: PendingSync) -> None:
        items = [p for p in await self.pending() if (p.year, p.month) != (item.year, item.month)]
        items.append(item)
        await self._write(items)
        logger.info("Queued remote %s for %s", item.op.value, month_key(item.year, item.month))

    async def process(self, remote: RemoteLimitsSource) -> int:
        """Replay queued writes; returns how many were delivered."""
        items = await self.pending()
        if not items:
            return 0
        delivered = 0
        remaining = []
        for item in items:
            try:
                if item.op is SyncOp.PUSH and item.limits is not None:
                    await remote.push_limits(item.limits)
                else:
                    await remote.delete_limits(item.year, item.month)
                delivered += 1
            except Exception as exc:
                logger.warning(
                    "Offline sync for %s still failing: %s", month_key(item.year, item.month), exc
                )
                remaining.append(item)
        await self._write(remaining)
        logger.info("Offline queue processed: %d delivered, %d pending", delivered, len(remaining))
        return delivered
