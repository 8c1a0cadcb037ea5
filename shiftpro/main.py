"""
ShiftPro vacation service — application entry point.

This is the **only** file that assembles the app. Business rules live in
``domain/`` and ``services/``; HTTP concerns in ``api/``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shiftpro.api.v1.api import api_router
from shiftpro.api.v1.endpoints.employee import limiter
from shiftpro.core.config import settings
from shiftpro.core.exceptions import register_exception_handlers
from shiftpro.db.session import async_session_factory, create_tables, engine
from shiftpro.services.container import ServiceContainer
from shiftpro.services.remote import RedisRemoteLimitsSource
from shiftpro.storage.kv import SqlKeyValueStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


def build_services() -> ServiceContainer:
    """SQL-backed store, plus the Redis remote when enabled."""
    remote = None
    if settings.REMOTE_ENABLED:
        remote = RedisRemoteLimitsSource.from_url(settings.REDIS_URL, org_id=settings.ORG_ID)
        logger.info("Remote limits source enabled at %s", settings.REDIS_URL)
    return ServiceContainer(SqlKeyValueStore(async_session_factory), remote=remote)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()

    services: ServiceContainer = app.state.services
    await services.boss.refresh()

    logger.info("%s v%s started (org %s)", settings.PROJECT_NAME, settings.VERSION, settings.ORG_ID)
    yield
    await services.close()
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app(services: ServiceContainer | None = None) -> FastAPI:
    application = FastAPI(
        title="ShiftPro",
        description="Vacation limits and publication service",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.services = services or build_services()

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Month-view throttle
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
