"""Shared fixtures and mock API responses for reconciler tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.reconcile.base import (
    Bolus,
    DestinationClient,
    DestinationStatus,
    Food,
    GlucoseReading,
    PhysicalActivity,
    PumpSettingsSnapshot,
    ScheduleEntry,
    SourceClient,
)
from src.reconcile.config_loader import SyncConfig, load_sync_config


def at_ms(ms: int) -> datetime:
    """UTC datetime ``ms`` milliseconds after the epoch."""
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=ms)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sync_config() -> SyncConfig:
    """Load the bundled sync config for tests."""
    return load_sync_config()


# ---------------------------------------------------------------------------
# Source record fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def older_snapshot() -> PumpSettingsSnapshot:
    return PumpSettingsSnapshot(
        active_schedule="Old",
        device_time=datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc),
        units="mg/dL",
        basal_schedules={"Old": [ScheduleEntry(offset_ms=0, value=0.5)]},
    )


@pytest.fixture
def newer_snapshot() -> PumpSettingsSnapshot:
    """A realistic two-schedule pump configuration."""
    return PumpSettingsSnapshot(
        active_schedule="Standard",
        device_time=datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc),
        units="mg/dL",
        basal_schedules={
            "Standard": [
                ScheduleEntry(offset_ms=0, value=0.85),
                ScheduleEntry(offset_ms=5_400_000, value=0.9),
            ],
            "Weekend": [ScheduleEntry(offset_ms=0, value=0.7)],
        },
        bg_targets={"Standard": [ScheduleEntry(offset_ms=0, value=120)]},
        carb_ratios={"Standard": [ScheduleEntry(offset_ms=0, value=10)]},
        insulin_sensitivities={
            "Standard": [ScheduleEntry(offset_ms=0, value=45)],
            "Sick": [ScheduleEntry(offset_ms=3_600_000, value=30)],
        },
    )


@pytest.fixture
def boluses() -> list[Bolus]:
    return [
        Bolus(time=at_ms(1000), normal=2.0),
        Bolus(time=at_ms(5000), normal=1.0, extended=0.5, duration=timedelta(minutes=30)),
    ]


@pytest.fixture
def foods() -> list[Food]:
    return [
        Food(time=at_ms(1000), net_carbs=30),
        Food(time=at_ms(2000), net_carbs=10),
    ]


@pytest.fixture
def activities() -> list[PhysicalActivity]:
    return [PhysicalActivity(time=at_ms(3000), name="Run", duration_seconds=1800)]


@pytest.fixture
def readings() -> list[GlucoseReading]:
    return [
        GlucoseReading(time=at_ms(60_000), value=120, units="mg/dL"),
        GlucoseReading(time=at_ms(120_000), value=180, units="mg/dL"),
    ]


# ---------------------------------------------------------------------------
# Mock clients
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_source(
    newer_snapshot: PumpSettingsSnapshot,
    boluses: list[Bolus],
    foods: list[Food],
    activities: list[PhysicalActivity],
    readings: list[GlucoseReading],
) -> MagicMock:
    """Source client returning the fixture records above."""
    source = MagicMock(spec=SourceClient)
    source.get_pump_settings_history = AsyncMock(return_value=[newer_snapshot])
    source.get_bolus_events = AsyncMock(return_value=boluses)
    source.get_food_events = AsyncMock(return_value=foods)
    source.get_physical_activity_events = AsyncMock(return_value=activities)
    source.get_glucose_readings = AsyncMock(return_value=readings)
    return source


@pytest.fixture
def mock_destination() -> MagicMock:
    """Destination client with an empty profile store and mg/dl status."""
    destination = MagicMock(spec=DestinationClient)
    destination.list_profiles = AsyncMock(return_value=[])
    destination.upsert_profile = AsyncMock(side_effect=lambda p: p)
    destination.append_treatments = AsyncMock(return_value=[])
    destination.append_entries = AsyncMock(return_value=None)
    destination.get_status = AsyncMock(return_value=DestinationStatus(units="mg/dl"))
    return destination


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """Mock httpx.AsyncClient for testing clients without real API calls."""
    client = MagicMock()
    response = MagicMock()
    response.status_code = 200
    response.raise_for_status = MagicMock()
    response.json = MagicMock(return_value={})
    response.headers = {}
    client.get = AsyncMock(return_value=response)
    client.post = AsyncMock(return_value=response)
    client.request = AsyncMock(return_value=response)
    return client
