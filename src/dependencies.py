"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from src.config import Settings, get_settings
from src.reconcile.clients import NightscoutClient, TidepoolClientFactory
from src.reconcile.sync.orchestrator import SyncOrchestrator


def build_orchestrator(settings: Settings) -> SyncOrchestrator:
    """Wire the Tidepool and Nightscout clients from settings."""
    factory = TidepoolClientFactory(
        username=settings.tidepool_username,
        password=settings.tidepool_password,
        base_url=settings.tidepool_base_url,
    )
    destination = NightscoutClient(
        base_url=settings.nightscout_base_url,
        api_key=settings.nightscout_api_key,
    )
    return SyncOrchestrator(source_factory=factory.create, destination=destination)


# Annotated shortcuts for route signatures
AppSettings = Annotated[Settings, Depends(get_settings)]


async def get_orchestrator(settings: AppSettings) -> SyncOrchestrator:
    """One orchestrator (and so one Tidepool session) per request."""
    return build_orchestrator(settings)


Orchestrator = Annotated[SyncOrchestrator, Depends(get_orchestrator)]
