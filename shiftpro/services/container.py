"""
Service wiring: one shared limits store, notifier and Boss session per
process, plus one Employee session per authenticated employee.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from shiftpro.core.config import settings
from shiftpro.services.boss_session import BossSessionController
from shiftpro.services.employee_session import EmployeeSessionController
from shiftpro.services.limits_store import LimitsStore
from shiftpro.services.local_storage import LocalStorage
from shiftpro.services.notifier import PublishNotifier
from shiftpro.services.remote import OfflineSyncQueue, RemoteLimitsSource
from shiftpro.storage.kv import KeyValueStore, ScopedKeyValueStore

logger = logging.getLogger(__name__)


class ServiceContainer:
    def __init__(
        self,
        kv: KeyValueStore,
        remote: RemoteLimitsSource | None = None,
        org_id: str | None = None,
        today: date | None = None,
    ) -> None:
        self.kv = kv
        self.remote = remote
        self.org_id = org_id or settings.ORG_ID
        self.today = today
        self.store = LimitsStore(kv)
        self.notifier = PublishNotifier(self.store)
        self.offline_queue = OfflineSyncQueue(kv)
        self.boss = BossSessionController(
            self.store,
            self.notifier,
            LocalStorage(ScopedKeyValueStore(kv, f"boss:{self.org_id}")),
            remote=remote,
            offline_queue=self.offline_queue,
            org_id=self.org_id,
            today=today,
        )
        self._employees: dict[str, EmployeeSessionController] = {}
        self._employees_lock = asyncio.Lock()

    async def employee_session(self, employee_id: str) -> EmployeeSessionController:
        """The session for ``employee_id``, opened on the current month when new."""
        async with self._employees_lock:
            session = self._employees.get(employee_id)
            if session is None:
                session = EmployeeSessionController(
                    employee_id,
                    self.store,
                    LocalStorage(ScopedKeyValueStore(self.kv, f"employee:{employee_id}")),
                    notifier=self.notifier,
                    remote=self.remote,
                    today=self.today,
                )
                try:
                    await session.switch_displayed_month(session.year, session.month)
                except Exception:
                    session.close()
                    raise
                self._employees[employee_id] = session
                logger.info("Opened vacation session for employee %s", employee_id)
            return session

    @property
    def employee_count(self) -> int:
        return len(self._employees)

    async def close(self) -> None:
        for session in self._employees.values():
            session.close()
        self._employees.clear()
        if self.remote is not None:
            await self.remote.close()
