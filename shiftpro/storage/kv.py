"""
Key-value persistence collaborators.

``KeyValueStore`` is the abstract byte store every service persists through.
``SqlKeyValueStore`` keeps rows in the ``kv_entries`` table,
``InMemoryKeyValueStore`` backs tests and ephemeral runs, and
``ScopedKeyValueStore`` gives each employee a private namespace over a shared
store so the per-month keys stay unchanged inside the namespace.
"""

from __future__ import annotations

import abc
import logging

from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shiftpro.core.exceptions import PersistenceError
from shiftpro.models.kv_entry import KeyValueEntry

logger = logging.getLogger(__name__)


class KeyValueStore(abc.ABC):
    @abc.abstractmethod
    async def get(self, key: str) -> bytes | None: ...

    @abc.abstractmethod
    async def set(self, key: str, value: bytes) -> None: ...

    @abc.abstractmethod
    async def remove(self, key: str) -> None: ...

    @abc.abstractmethod
    async def all_keys(self) -> list[str]: ...

    async def ping(self) -> bool:
        return True


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise PersistenceError(f"Value for {key!r} must be bytes")
        self._data[key] = bytes(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def all_keys(self) -> list[str]:
        return list(self._data)


class ScopedKeyValueStore(KeyValueStore):
    """Namespaced view: ``key`` is stored as ``"{scope}/{key}"``."""

    def __init__(self, inner: KeyValueStore, scope: str) -> None:
        if not scope or "/" in scope:
            raise ValueError("Scope must be a non-empty string without '/'")
        self._inner = inner
        self._prefix = f"{scope}/"

    async def get(self, key: str) -> bytes | None:
        return await self._inner.get(self._prefix + key)

    async def set(self, key: str, value: bytes) -> None:
        await self._inner.set(self._prefix + key, value)

    async def remove(self, key: str) -> None:
        await self._inner.remove(self._prefix + key)

    async def all_keys(self) -> list[str]:
        return [
            k[len(self._prefix):]
            for k in await self._inner.all_keys()
            if k.startswith(self._prefix)
        ]


class SqlKeyValueStore(KeyValueStore):
    """Async SQLAlchemy store. Database errors surface as ``PersistenceError``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> bytes | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(KeyValueEntry.value).where(KeyValueEntry.key == key)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not read {key!r}") from exc

    async def set(self, key: str, value: bytes) -> None:
        try:
            async with self._session_factory() as session:
                entry = await session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Store write failed for %s: %s", key, exc)
            raise PersistenceError(f"Could not write {key!r}") from exc

    async def remove(self, key: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(sa_delete(KeyValueEntry).where(KeyValueEntry.key == key))
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Store delete failed for %s: %s", key, exc)
            raise PersistenceError(f"Could not delete {key!r}") from exc

    async def all_keys(self) -> list[str]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(KeyValueEntry.key).order_by(KeyValueEntry.key))
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError("Could not list stored keys") from exc

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(select(1))
            return True
        except SQLAlchemyError as exc:
            logger.error("Health check DB failure: %s", exc)
            return False
