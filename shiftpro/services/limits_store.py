"""
LimitsStore — one ``VacationLimits`` record per (year, month), last write wins.

Records live under ``VacationLimits_{YYYY}_{MM}``. A missing record reads as
the unpublished default policy; only a stored *and* published record counts
as existing.
"""

from __future__ import annotations

import logging
import re

from pydantic import ValidationError

from shiftpro.core.exceptions import PersistenceError
from shiftpro.domain.models import PolicyLookup, VacationLimits
from shiftpro.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "VacationLimits_"
_KEY_RE = re.compile(r"^VacationLimits_(\d{4})_(\d{2})$")


def limits_key(year: int, month: int) -> str:
    return f"{KEY_PREFIX}{year:04d}_{month:02d}"


class LimitsStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def save(self, limits: VacationLimits) -> bool:
        try:
            payload = limits.model_dump_json().encode("utf-8")
        except (ValueError, TypeError) as exc:
            raise PersistenceError(f"Could not serialize limits for {limits.month_key}") from exc
        await self._kv.set(limits_key(limits.year, limits.month), payload)
        logger.info(
            "Saved vacation limits %s (published=%s)", limits.month_key, limits.is_published
        )
        return True

    async def _load(self, year: int, month: int) -> VacationLimits | None:
        raw = await self._kv.get(limits_key(year, month))
        if raw is None:
            return None
        try:
            return VacationLimits.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable limits record for %04d-%02d", year, month)
            return None

    async def get(self, year: int, month: int) -> VacationLimits:
        """Stored record, or the unpublished default. Check ``is_published``."""
        stored = await self._load(year, month)
        return stored if stored is not None else VacationLimits.default_for(year, month)

    async def lookup(self, year: int, month: int) -> PolicyLookup:
        return PolicyLookup.of(await self._load(year, month))

    async def exists(self, year: int, month: int) -> bool:
        return (await self.lookup(year, month)).is_published

    async def delete(self, year: int, month: int) -> bool:
        key = limits_key(year, month)
        await self._kv.remove(key)
        gone = await self._kv.get(key) is None
        logger.info("Deleted vacation limits %04d-%02d", year, month)
        return gone

    async def stored_months(self) -> list[tuple[int, int]]:
        months = []
        for key in await self._kv.all_keys():
            match = _KEY_RE.match(key)
            if match:
                months.append((int(match.group(1)), int(match.group(2))))
        return sorted(months)

    async def list_published(self) -> list[VacationLimits]:
        published = []
        for year, month in await self.stored_months():
            limits = await self._load(year, month)
            if limits is not None and limits.is_published:
                published.append(limits)
        return sorted(published, key=lambda l: l.key)

    async def clear_all(self) -> list[tuple[int, int]]:
        """Remove every limits record and return the removed (year, month) keys."""
        removed = await self.stored_months()
        for year, month in removed:
            await self._kv.remove(limits_key(year, month))
        if removed:
            logger.warning("Cleared %d vacation limits records", len(removed))
        return removed
