"""FastAPI application for geogate."""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request

from geogate import __version__
from geogate.api.routes import router as api_router
from geogate.config import Settings, get_settings
from geogate.db import DatabaseManager
from geogate.lookup import GeoLookup, create_lookup
from geogate.quota import AdmissionEngine, CredentialStore, ExpirySweeper
from geogate.scheduler import SchedulerService

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "expiry_sweep"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan events."""
    settings: Settings = app.state.settings
    logger.info("Starting geogate API...")
    app.state.store.setup()
    logger.info(f"Lookup backend: {app.state.lookup.backend_name}")

    scheduler: SchedulerService | None = None
    if settings.sweeper_enabled:
        scheduler = SchedulerService(timezone=settings.scheduler_timezone)
        scheduler.add_job(
            job_id=SWEEP_JOB_ID,
            func=app.state.sweeper.run,
            interval_minutes=settings.sweep_interval_minutes,
        )
        scheduler.start()
        logger.info(f"Expiry sweeper scheduled every {settings.sweep_interval_minutes}m")
    app.state.scheduler = scheduler

    yield

    logger.info("Shutting down geogate API...")
    if scheduler is not None:
        scheduler.shutdown(wait=True)
    app.state.lookup.close()
    app.state.db_manager.close()


def create_app(
    settings: Settings | None = None,
    db_manager: DatabaseManager | None = None,
    lookup: GeoLookup | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use, defaults to the cached environment settings
        db_manager: Database manager, defaults to one built from settings
        lookup: Downstream lookup, defaults to the configured backend
    """
    settings = settings or get_settings()
    policy = settings.quota_policy()
    db_manager = db_manager or DatabaseManager(database_url=settings.database_url)
    store = CredentialStore(db_manager, policy)

    app = FastAPI(
        title="geogate",
        description="GeoIP lookup behind per-key request quotas",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db_manager = db_manager
    app.state.store = store
    app.state.engine = AdmissionEngine(store, policy)
    app.state.sweeper = ExpirySweeper(store, policy)
    app.state.lookup = lookup or create_lookup(settings)
    app.state.scheduler = None

    @app.middleware("http")
    async def add_timing_header(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = (time.perf_counter() - start_time) * 1000
        response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
        return response

    app.include_router(api_router)
    return app
