"""
Async SQLAlchemy engine & session factory for the key-value table.

PostgreSQL through asyncpg in deployments; SQLite through aiosqlite for local
runs, where an in-memory database has to live on one shared connection.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shiftpro.core.config import settings
from shiftpro.db.base import Base

# registers kv_entries on Base.metadata
from shiftpro.models.kv_entry import KeyValueEntry  # noqa: F401

logger = logging.getLogger(__name__)

engine_args: dict = {"echo": False}

if settings.DATABASE_URL.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}
    if ":memory:" in settings.DATABASE_URL:
        engine_args["poolclass"] = StaticPool
else:
    engine_args.update(
        {
            "pool_pre_ping": True,
            "pool_size": 10,
            "max_overflow": 5,
            "pool_recycle": 300,
        }
    )

engine = create_async_engine(settings.DATABASE_URL, **engine_args)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Key-value table ready (%s)", engine.url.get_backend_name())
