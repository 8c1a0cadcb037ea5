"""
Key-value entry — backing table for the local store.

Each row holds one serialized record (limits, vacation data, publish status,
schedule, offline queue) under its storage key.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, LargeBinary, String

from shiftpro.db.base import Base


class KeyValueEntry(Base):
    __tablename__ = "kv_entries"

    key: str = Column(String(255), primary_key=True)  # type: ignore[assignment]
    value: bytes = Column(LargeBinary, nullable=False)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
