"""
FastAPI application factory for the Solarman energy bridge.

The lifespan loads settings, opens the sample store, restores the
calibration state, builds the collector and read cache, and starts the
periodic poll loop as a background task.  On shutdown the loop is signalled
through an asyncio.Event, awaited, and the store is closed.

CHANGELOG:
- 2026-10-18: Register admin router (STORY-014)
- 2026-10-18: Register series router (STORY-012)
- 2026-10-18: Initial creation (STORY-013)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from collector.src.api.admin import router as admin_router
from collector.src.api.health import router as health_router
from collector.src.api.realtime import router as realtime_router
from collector.src.api.series import router as series_router
from collector.src.auth import AdminAuth
from collector.src.cache import ReadCache
from collector.src.config import CollectorSettings
from collector.src.main import log_config_summary, poll_loop
from collector.src.pipeline import Collector
from collector.src.solarman import SolarmanClient
from collector.src.store import SampleStore

logger = logging.getLogger(__name__)


def build_client(settings: CollectorSettings) -> SolarmanClient:
    """Create the Solarman API client from settings."""
    return SolarmanClient(
        base_url=settings.solarman_base_url,
        app_id=settings.solarman_app_id,
        app_secret=settings.solarman_app_secret,
        email=settings.solarman_email,
        password=settings.solarman_password,
        device_sn=settings.solarman_device_sn,
        station_id=settings.solarman_station_id,
        timeout_s=settings.request_timeout_s,
    )


def create_app(
    settings: CollectorSettings | None = None,
    client: SolarmanClient | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use. Loaded from the environment when None.
        client: Solarman client to use. Built from settings when None.

    Returns:
        FastAPI: The configured application.
    """
    settings = settings if settings is not None else CollectorSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        log_config_summary(settings)

        store = SampleStore(settings.database_path)
        await store.open()

        collector = Collector(
            client=client if client is not None else build_client(settings),
            store=store,
            base_total_kwh=settings.base_total_kwh,
            noise_floor_w=settings.noise_floor_w,
            timeout_s=settings.request_timeout_s,
        )
        await collector.load_state()
        cache = ReadCache(
            collector,
            ttl_s=settings.cache_ttl_s,
            max_stale_s=settings.cache_max_stale_s,
        )

        app.state.settings = settings
        app.state.store = store
        app.state.collector = collector
        app.state.cache = cache
        app.state.auth = AdminAuth(settings.admin_token)

        shutdown_event = asyncio.Event()
        poll_task: asyncio.Task | None = None
        if settings.poll_enabled:
            poll_task = asyncio.create_task(
                poll_loop(
                    collector=collector,
                    cache=cache,
                    poll_interval_s=settings.poll_interval_s,
                    shutdown_event=shutdown_event,
                )
            )
        else:
            logger.info("Poll loop disabled, collecting on demand only")

        logger.info("Collector API ready")
        try:
            yield
        finally:
            logger.info("Collector API shutting down")
            shutdown_event.set()
            if poll_task is not None:
                await poll_task
            await store.close()

    app = FastAPI(
        title="Solarman Energy Bridge",
        description="Reconciled solar production telemetry from the Solarman cloud.",
        version="0.1.0",
        lifespan=lifespan,
    )

    origins = settings.cors_origin_list
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type"],
        )

    app.include_router(health_router)
    app.include_router(realtime_router)
    app.include_router(series_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root() -> dict:
        """Root status endpoint."""
        return {"status": "ok"}

    return app
