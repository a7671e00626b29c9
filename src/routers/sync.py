"""Trigger Tidepool → Nightscout sync operations over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Awaitable

import httpx
from fastapi import APIRouter, HTTPException

from src.dependencies import Orchestrator
from src.models.sync import SyncRequest, SyncResultRead
from src.reconcile.clients import TidepoolAuthError
from src.reconcile.sync.orchestrator import SyncResult, SyncWindow
from src.reconcile.units import UnsupportedConversion

router = APIRouter(prefix="/sync", tags=["sync"])
logger = logging.getLogger("nightsync.routers.sync")


def _window(body: SyncRequest | None) -> SyncWindow | None:
    if body is None or (body.since is None and body.till is None):
        return None
    return SyncWindow(since=body.since, till=body.till)


async def _run(operation: Awaitable[SyncResult]) -> SyncResult:
    try:
        return await operation
    except UnsupportedConversion as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except (httpx.HTTPError, TidepoolAuthError) as exc:
        logger.warning("Upstream call failed: %s", exc)
        raise HTTPException(status_code=502, detail=f"Upstream error: {exc}") from exc


@router.post("/profiles", response_model=SyncResultRead)
async def sync_profiles(orchestrator: Orchestrator, body: SyncRequest | None = None) -> Any:
    return await _run(orchestrator.sync_profiles(_window(body)))


@router.post("/treatments", response_model=SyncResultRead)
async def sync_treatments(orchestrator: Orchestrator, body: SyncRequest | None = None) -> Any:
    return await _run(orchestrator.sync_treatments(_window(body)))


@router.post("/entries", response_model=SyncResultRead)
async def sync_entries(orchestrator: Orchestrator, body: SyncRequest | None = None) -> Any:
    return await _run(orchestrator.sync_entries(_window(body)))


@router.post("/all", response_model=list[SyncResultRead])
async def sync_all(orchestrator: Orchestrator, body: SyncRequest | None = None) -> Any:
    return await orchestrator.sync_all(_window(body))
