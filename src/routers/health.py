"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.dependencies import AppSettings
from src.reconcile.config_loader import get_sync_config

router = APIRouter(tags=["system"])
logger = logging.getLogger("nightsync.health")


@router.get("/health")
async def health_check(settings: AppSettings) -> dict:
    """Liveness probe. Returns 200 if the API process is up."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "sync_config_version": get_sync_config().version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
