"""
Month-keyed persistence for vacation selections, Boss publish status and
schedules.
"""

from __future__ import annotations

import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from shiftpro.core.exceptions import PersistenceError
from shiftpro.domain.models import BossPublishStatus, ScheduleData, VacationData
from shiftpro.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def vacation_data_key(month: str) -> str:
    return f"VacationData_{month}"


def publish_status_key(month: str) -> str:
    return f"BossPublishStatus_{month}"


def schedule_key(month: str) -> str:
    return f"ScheduleData_{month}"


class LocalStorage:
    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def _save(self, key: str, model: BaseModel) -> None:
        try:
            payload = model.model_dump_json().encode("utf-8")
        except (ValueError, TypeError) as exc:
            raise PersistenceError(f"Could not serialize {key}") from exc
        await self._kv.set(key, payload)

    async def _load(self, key: str, model_cls: type[M]) -> M | None:
        raw = await self._kv.get(key)
        if raw is None:
            return None
        try:
            return model_cls.model_validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring unreadable record %s", key)
            return None

    # ── Vacation selection ─────────────────────────────────────────
    async def save_vacation_data(self, data: VacationData) -> None:
        await self._save(vacation_data_key(data.month), data)

    async def load_vacation_data(self, month: str) -> VacationData | None:
        return await self._load(vacation_data_key(month), VacationData)

    async def clear_vacation_data(self, month: str) -> None:
        await self._kv.remove(vacation_data_key(month))

    # ── Boss publish status ────────────────────────────────────────
    async def save_publish_status(self, status: BossPublishStatus) -> None:
        await self._save(publish_status_key(status.month), status)

    async def load_publish_status(self, month: str) -> BossPublishStatus | None:
        return await self._load(publish_status_key(month), BossPublishStatus)

    # ── Schedule ───────────────────────────────────────────────────
    async def save_schedule(self, schedule: ScheduleData) -> None:
        await self._save(schedule_key(schedule.month), schedule)

    async def load_schedule(self, month: str) -> ScheduleData | None:
        return await self._load(schedule_key(month), ScheduleData)

    async def clear_schedule(self, month: str) -> None:
        await self._kv.remove(schedule_key(month))
