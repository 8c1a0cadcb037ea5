"""
Health endpoint — store and remote connectivity.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from shiftpro.api.v1.deps import get_services
from shiftpro.core.config import settings
from shiftpro.schemas.vacation import HealthResponse
from shiftpro.services.container import ServiceContainer

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(services: ServiceContainer = Depends(get_services)) -> HealthResponse:
    """Public health check — store and Redis connectivity."""
    result = HealthResponse(db=False, redis=False, version=settings.VERSION)
    result.db = await services.kv.ping()
    if services.remote is not None:
        result.redis = await services.remote.ping()
    return result
