"""
Shared test fixtures for the ShiftPro vacation service test suite.

Services run on the in-memory key-value store; SQL store tests get their own
aiosqlite engine.
"""

import asyncio
import os
from datetime import date
from typing import AsyncGenerator

import pytest

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REMOTE_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-the-vacation-service-suite"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shiftpro.api.v1.deps import get_services
from shiftpro.core.security import ROLE_BOSS, ROLE_EMPLOYEE, create_access_token
from shiftpro.db.base import Base
from shiftpro.main import app
from shiftpro.models.kv_entry import KeyValueEntry  # noqa: F401
from shiftpro.services.container import ServiceContainer
from shiftpro.services.limits_store import LimitsStore
from shiftpro.services.local_storage import LocalStorage
from shiftpro.services.notifier import PublishNotifier
from shiftpro.services.remote import InMemoryRemoteLimitsSource
from shiftpro.storage.kv import InMemoryKeyValueStore

# Pinned so month-window checks do not depend on the wall clock
TODAY = date(2025, 8, 15)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


class YieldingKeyValueStore(InMemoryKeyValueStore):
    """Lets other tasks run on every read and write, like a real database."""

    async def get(self, key: str) -> bytes | None:
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.sleep(0)
        await super().set(key, value)


@pytest.fixture
def yielding_kv() -> InMemoryKeyValueStore:
    return YieldingKeyValueStore()


@pytest.fixture
def store(kv: InMemoryKeyValueStore) -> LimitsStore:
    return LimitsStore(kv)


@pytest.fixture
def notifier(store: LimitsStore) -> PublishNotifier:
    return PublishNotifier(store)


@pytest.fixture
def storage(kv: InMemoryKeyValueStore) -> LocalStorage:
    return LocalStorage(kv)


@pytest.fixture
def remote() -> InMemoryRemoteLimitsSource:
    return InMemoryRemoteLimitsSource()


@pytest.fixture
async def services(kv: InMemoryKeyValueStore) -> AsyncGenerator[ServiceContainer, None]:
    container = ServiceContainer(kv, today=TODAY)
    await container.boss.switch_displayed_month(TODAY.year, TODAY.month)
    yield container
    await container.close()


# ── HTTP client ─────────────────────────────────────────────────────
@pytest.fixture
async def async_client(services: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_services() -> ServiceContainer:
        return services

    app.dependency_overrides[get_services] = _override_get_services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_services, None)


@pytest.fixture
def boss_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token('boss-1', ROLE_BOSS)}"}


@pytest.fixture
def employee_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token('emp-1', ROLE_EMPLOYEE)}"}


# ── SQL store ───────────────────────────────────────────────────────
@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory SQLite database with the kv table created."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()
