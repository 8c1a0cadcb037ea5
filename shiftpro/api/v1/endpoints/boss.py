"""
Boss endpoints — publish, draft and withdraw vacation rules, publish
schedules, and replay remote writes that failed.

Every route names its month and runs with the Boss session held on it.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from shiftpro.api.v1.deps import Principal, get_services, require_boss
from shiftpro.domain.models import ScheduleData, VacationSetting
from shiftpro.schemas.vacation import (
    BossStatusResponse,
    ClearLimitsResponse,
    PublishResponse,
    ScheduleCreate,
    SyncFlushResponse,
    VacationSettingCreate,
)
from shiftpro.services.boss_session import BossSessionController
from shiftpro.services.container import ServiceContainer

router = APIRouter(prefix="/boss", tags=["boss"])
logger = logging.getLogger(__name__)


def _status(boss: BossSessionController) -> BossStatusResponse:
    status = boss.status
    return BossStatusResponse(
        month=status.month,
        state=boss.state.value,
        vacation_published=status.vacation_published,
        schedule_published=status.schedule_published,
        created_at=status.created_at,
    )


@router.get("/{year}/{month}/status", response_model=BossStatusResponse)
async def get_status(
    year: int,
    month: int,
    services: ServiceContainer = Depends(get_services),
    _boss: Principal = Depends(require_boss),
) -> BossStatusResponse:
    """Publish flags for the month, reconciled with the stored policy."""
    async with services.boss.focused(year, month, refresh=True) as boss:
        return _status(boss)


# ── Vacation rules ──────────────────────────────────────────────────
@router.post("/vacation/publish", response_model=PublishResponse)
async def publish_vacation(
    body: VacationSettingCreate,
    services: ServiceContainer = Depends(get_services),
    principal: Principal = Depends(require_boss),
) -> PublishResponse:
    async with services.boss.focused(body.year, body.month) as boss:
        event = await boss.publish_vacation(VacationSetting(**body.model_dump()))
        logger.info("Vacation rules %s %s by %s", event.kind.value, event.target_month, principal.subject)
        return PublishResponse(
            event=event.kind.value,
            month=event.target_month,
            state=boss.state.value,
            limits=await services.store.get(body.year, body.month),
        )


@router.post("/vacation/draft", response_model=PublishResponse)
async def save_draft(
    body: VacationSettingCreate,
    services: ServiceContainer = Depends(get_services),
    _boss: Principal = Depends(require_boss),
) -> PublishResponse:
    """Store the rules without making them visible to employees."""
    async with services.boss.focused(body.year, body.month) as boss:
        draft = await boss.save_draft(VacationSetting(**body.model_dump()))
        return PublishResponse(
            event="drafted",
            month=draft.month_key,
            state=boss.state.value,
            limits=draft,
        )


@router.delete("/vacation/{year}/{month}", response_model=PublishResponse)
async def unpublish_vacation(
    year: int,
    month: int,
    services: ServiceContainer = Depends(get_services),
    principal: Principal = Depends(require_boss),
) -> PublishResponse:
    async with services.boss.focused(year, month) as boss:
        event = await boss.unpublish()
        logger.warning("Vacation rules for %s withdrawn by %s", event.target_month, principal.subject)
        return PublishResponse(event=event.kind.value, month=event.target_month, state=boss.state.value)


@router.post("/limits/clear", response_model=ClearLimitsResponse)
async def clear_all_limits(
    services: ServiceContainer = Depends(get_services),
    principal: Principal = Depends(require_boss),
) -> ClearLimitsResponse:
    """Administrative reset: removes the rules of every month."""
    async with services.boss.focused() as boss:
        events = await boss.clear_all_limits()
    logger.warning("All vacation rules cleared by %s (%d months)", principal.subject, len(events))
    return ClearLimitsResponse(cleared_months=[e.target_month for e in events])


# ── Schedule ────────────────────────────────────────────────────────
@router.post("/schedule/publish", response_model=BossStatusResponse)
async def publish_schedule(
    body: ScheduleCreate,
    services: ServiceContainer = Depends(get_services),
    _boss: Principal = Depends(require_boss),
) -> BossStatusResponse:
    async with services.boss.focused(body.year, body.month) as boss:
        await boss.publish_schedule(
            ScheduleData(mode=body.mode, selected_dates=frozenset(body.dates), month=boss.displayed_month)
        )
        return _status(boss)


@router.delete("/schedule/{year}/{month}", response_model=BossStatusResponse)
async def unpublish_schedule(
    year: int,
    month: int,
    services: ServiceContainer = Depends(get_services),
    _boss: Principal = Depends(require_boss),
) -> BossStatusResponse:
    async with services.boss.focused(year, month) as boss:
        await boss.unpublish_schedule()
        return _status(boss)


# ── Remote sync ─────────────────────────────────────────────────────
@router.post("/sync/flush", response_model=SyncFlushResponse)
async def flush_sync_queue(
    services: ServiceContainer = Depends(get_services),
    _boss: Principal = Depends(require_boss),
) -> SyncFlushResponse:
    """Replay remote writes that failed earlier."""
    delivered = await services.boss.flush_offline_queue()
    pending = await services.offline_queue.pending()
    return SyncFlushResponse(delivered=delivered, pending=len(pending))
