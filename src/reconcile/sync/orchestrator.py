"""Drive one Tidepool → Nightscout reconciliation run.

Three independent operations share one lazily created Tidepool session:

1. ``sync_profiles``   — settings history → profile document → match stored
                         ``_id`` by ``mills`` → PUT
2. ``sync_treatments`` — bolus + food + activity streams → merged treatments → POST
3. ``sync_entries``    — Nightscout's configured unit → CGM readings → sgv entries → POST

Each operation raises whatever its clients raise; nothing is retried.
``sync_all`` runs the three concurrently and reports a failure in one without
cancelling the others.

Usage::

    orchestrator = SyncOrchestrator(
        source_factory=TidepoolClientFactory(user, password).create,
        destination=NightscoutClient(url, api_key),
    )
    results = await orchestrator.sync_all()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Awaitable, Callable

from src.reconcile.base import DestinationClient, SourceClient
from src.reconcile.config_loader import SyncConfig, get_sync_config
from src.reconcile.entry_mapper import map_entries
from src.reconcile.profile_builder import build_profile, select_latest_snapshot
from src.reconcile.sync.dedup import assign_existing_id
from src.reconcile.treatment_merger import merge_treatments

logger = logging.getLogger("nightsync.reconcile.sync.orchestrator")

SourceFactory = Callable[[], Awaitable[SourceClient]]


@dataclass(frozen=True)
class SyncWindow:
    """Time window for one run.  ``None`` leaves that side open."""

    since: datetime | None = None
    till: datetime | None = None

    @classmethod
    def today(cls, now: datetime | None = None) -> "SyncWindow":
        """From UTC midnight of the current day, open-ended."""
        current = now or datetime.now(timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        current = current.astimezone(timezone.utc)
        return cls(since=datetime.combine(current.date(), time.min, tzinfo=timezone.utc))


@dataclass
class SyncResult:
    """Result of one sync operation.

    Attributes:
        operation:      'profiles', 'treatments' or 'entries'.
        status:         'success', 'skipped' or 'error'.
        records_pushed: Documents written to Nightscout.
        profile_id:     ``_id`` reused for the profile write, if any.
        error:          Error message if status == 'error'.
        synced_at:      UTC timestamp of completion.
    """

    operation: str
    status: str = "success"
    records_pushed: int = 0
    profile_id: str | None = None
    error: str | None = None
    synced_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SyncOrchestrator:
    """Coordinate the source and destination clients around the transforms.

    The Tidepool session is created on first use and reused by every
    operation on this instance, including concurrent first use.
    """

    def __init__(
        self,
        source_factory: SourceFactory,
        destination: DestinationClient,
        config: SyncConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            source_factory: Coroutine function returning an authenticated source client.
            destination:    Nightscout client.
            config:         Sync constants; defaults to the bundled sync_config.yaml.
        """
        self._source_factory = source_factory
        self._destination = destination
        self._config = config or get_sync_config()
        self._source_task: asyncio.Task[SourceClient] | None = None
        self._source_lock = asyncio.Lock()

    async def source(self) -> SourceClient:
        """Return the cached source client, creating it at most once.

        Concurrent callers share the first login attempt, so a failed login
        raises the same error to each of them instead of being retried.
        """
        async with self._source_lock:
            if self._source_task is None:
                self._source_task = asyncio.ensure_future(self._open_source())
        return await asyncio.shield(self._source_task)

    async def _open_source(self) -> SourceClient:
        source = await self._source_factory()
        logger.info("Source session established")
        return source

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def sync_profiles(self, window: SyncWindow | None = None) -> SyncResult:
        """Rebuild the profile from the newest pump settings and upsert it.

        Only snapshots inside the window are considered, so a day without new
        pump settings skips the upsert.
        """
        window = window or SyncWindow.today()
        result = SyncResult(operation="profiles")
        source = await self.source()

        history = await source.get_pump_settings_history(window.since, window.till)
        latest = select_latest_snapshot(history)
        if latest is not None and latest.device_time is None:
            logger.warning(
                "Newest pump settings snapshot has no timestamp; "
                "profile key falls back to the current time"
            )

        profile_cfg = self._config.profile
        profile = build_profile(
            history,
            profile_cfg.target_low_offset,
            defaults=profile_cfg.store_defaults(),
        )
        if profile is None:
            logger.info("No pump settings found; skipping profile upsert")
            result.status = "skipped"
            return result

        existing = await self._destination.list_profiles()
        assign_existing_id(profile, existing)
        await self._destination.upsert_profile(profile)

        result.records_pushed = 1
        result.profile_id = profile.id
        logger.info(
            "Profile %s %s (%d schedules)",
            profile.mills,
            "updated" if profile.id else "created",
            len(profile.store),
        )
        return result

    async def sync_treatments(self, window: SyncWindow | None = None) -> SyncResult:
        """Merge bolus, food and activity events in the window and append them."""
        window = window or SyncWindow.today()
        result = SyncResult(operation="treatments")
        source = await self.source()

        boluses = await source.get_bolus_events(window.since, window.till)
        foods = await source.get_food_events(window.since, window.till)
        activities = await source.get_physical_activity_events(window.since, window.till)

        treatments = merge_treatments(
            boluses,
            foods,
            activities,
            entered_by=self._config.treatments.entered_by,
        )
        if not treatments:
            logger.info("No treatments in window; skipping push")
            result.status = "skipped"
            return result

        await self._destination.append_treatments(treatments)
        result.records_pushed = len(treatments)
        logger.info(
            "Pushed %d treatments (%d boluses, %d foods, %d activities)",
            len(treatments),
            len(boluses),
            len(foods),
            len(activities),
        )
        return result

    async def sync_entries(self, window: SyncWindow | None = None) -> SyncResult:
        """Convert CGM readings in the window to Nightscout's unit and append them.

        Raises:
            UnsupportedConversion: If a reading or the server uses an unknown unit.
        """
        window = window or SyncWindow.today()
        result = SyncResult(operation="entries")
        source = await self.source()

        status = await self._destination.get_status()
        entries_cfg = self._config.entries
        units = status.units or entries_cfg.default_units

        readings = await source.get_glucose_readings(window.since, window.till)
        entries = map_entries(
            readings, units, device=entries_cfg.device, noise=entries_cfg.noise
        )
        if not entries:
            logger.info("No glucose readings in window; skipping push")
            result.status = "skipped"
            return result

        await self._destination.append_entries(entries)
        result.records_pushed = len(entries)
        logger.info("Pushed %d entries in %s", len(entries), units)
        return result

    async def sync_all(self, window: SyncWindow | None = None) -> list[SyncResult]:
        """Run all three operations concurrently.

        A failing operation yields an 'error' result; the others still finish.
        """
        outcomes = await asyncio.gather(
            self.sync_profiles(window),
            self.sync_treatments(window),
            self.sync_entries(window),
            return_exceptions=True,
        )

        results: list[SyncResult] = []
        for operation, outcome in zip(("profiles", "treatments", "entries"), outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error("Sync operation %s failed: %s", operation, outcome)
                results.append(
                    SyncResult(operation=operation, status="error", error=str(outcome))
                )
            else:
                results.append(outcome)
        return results
