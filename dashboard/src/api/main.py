"""
FastAPI application entry point for the BMS dashboard API.

The lifespan is the composition root: it loads DashboardSettings, configures
logging, creates the registration schema, and builds the compute client,
fetch coordinator, latest-reading service and polling scheduler. All of them
are kept on ``app.state`` for route handlers and torn down on shutdown.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import asyncio
import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dashboard.src.api.batteries import router as batteries_router
from dashboard.src.api.cache import router as cache_router
from dashboard.src.api.health import router as health_router
from dashboard.src.api.realtime import router as realtime_router
from dashboard.src.api.series import router as series_router
from dashboard.src.api.ws import router as ws_router
from dashboard.src.auth.bearer import BearerAuth, parse_api_tokens
from dashboard.src.clients.compute import ComputeClient
from dashboard.src.config import DashboardSettings
from dashboard.src.db.session import create_engine, create_session_factory, init_models
from dashboard.src.log import configure_logging, masked_secret
from dashboard.src.services.coordinator import FetchCoordinator
from dashboard.src.services.readings import LatestReadingService
from dashboard.src.services.reshaper import shape_bms_result
from dashboard.src.services.scheduler import PollingScheduler

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Parse CORS_ORIGINS (comma separated); middleware is fixed at import."""
    raw = os.environ.get("CORS_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build services on startup, release on shutdown.

    Raises:
        pydantic.ValidationError: If the configuration is invalid.
    """
    settings = DashboardSettings()
    configure_logging(settings.log_level)
    app.state.settings = settings

    token_map = parse_api_tokens(settings.api_tokens)
    app.state.auth = BearerAuth(token_map)

    engine = create_engine(settings.database_url)
    await init_models(engine)
    app.state.session_factory = create_session_factory(engine)

    compute = ComputeClient(
        settings.compute_base_url,
        api_key=settings.compute_api_key,
        timeout_s=settings.compute_timeout_s,
        series_function=settings.series_function,
        latest_function=settings.latest_function,
    )
    coordinator = FetchCoordinator(
        compute.fetch_series,
        shape_bms=partial(
            shape_bms_result,
            progressive=settings.progressive_render,
            threshold=settings.progressive_threshold,
        ),
        controller_id=settings.controller_device_id,
        progress_step_interval_s=settings.progress_step_interval_s,
        in_flight_timeout_s=settings.in_flight_timeout_s,
    )
    readings = LatestReadingService(
        compute.fetch_latest,
        redis_url=settings.redis_url,
        ttl_s=settings.cache_ttl_s,
        controller_id=settings.controller_device_id,
    )
    scheduler = PollingScheduler(
        readings.get_latest,
        interval_s=settings.poll_interval_s,
        controller_id=settings.controller_device_id,
    )
    app.state.compute = compute
    app.state.coordinator = coordinator
    app.state.readings = readings
    app.state.scheduler = scheduler

    logger.info(
        "Config: compute=%s api_key=%s tokens=%d (%s) progressive=%s poll=%ss",
        settings.compute_base_url,
        masked_secret(settings.compute_api_key),
        len(token_map),
        masked_secret(settings.api_tokens),
        settings.progressive_render,
        settings.poll_interval_s,
    )

    preload: asyncio.Task | None = None
    if settings.preload_ids:
        preload = asyncio.create_task(coordinator.preload(settings.preload_ids))

    logger.info("BMS dashboard API ready")
    yield
    logger.info("BMS dashboard API shutting down")

    if preload is not None and not preload.done():
        preload.cancel()
        await asyncio.gather(preload, return_exceptions=True)
    await scheduler.shutdown()
    await compute.aclose()
    await engine.dispose()


app = FastAPI(
    title="BMS Dashboard API",
    description="Battery telemetry API for BMS nodes and the pack controller.",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(health_router)
app.include_router(series_router)
app.include_router(cache_router)
app.include_router(realtime_router)
app.include_router(batteries_router)
app.include_router(ws_router)
