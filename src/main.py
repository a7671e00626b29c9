"""Nightsync API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000

The API only triggers reconciliation runs; see ``src.__main__`` for the
one-shot command line equivalent.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.config import Settings, configure_logging, get_settings
from src.reconcile.config_loader import get_sync_config
from src.routers import health, sync

logger = logging.getLogger("nightsync")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    # Fail fast on a broken sync_config.yaml
    sync_config = get_sync_config()
    logger.info(
        "Nightsync API v%s [%s] up, sync config v%s, Nightscout at %s",
        settings.app_version,
        settings.environment,
        sync_config.version,
        settings.nightscout_base_url,
    )
    yield
    logger.info("Nightsync API shut down")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Reconciles Tidepool pump and CGM data into Nightscout.",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # /health stays outside the versioned prefix
    app.include_router(health.router)
    app.include_router(sync.router, prefix="/api/v1")
    return app


app = create_app()
