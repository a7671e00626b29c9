"""Tidepool → Nightscout reconciliation engine.

Reads pump settings, insulin / food / activity events and CGM readings from
Tidepool, reshapes them into Nightscout's schema, and writes them without
duplicating stored profiles.

Subpackages:
    clients/ — Tidepool (source) and Nightscout (destination) HTTP clients
    sync/    — Orchestrator and idempotency matching

Core modules:
    base             — Data model and client ABCs
    units            — mg/dL ↔ mmol/L conversion
    profile_builder  — Pump settings → Nightscout profile document
    treatment_merger — Bolus / food / activity → treatments
    entry_mapper     — CGM readings → sgv entries
    config_loader    — Load/validate/hot-reload sync_config.yaml
"""

from src.reconcile.base import (
    Bolus,
    DestinationClient,
    EventRecord,
    Food,
    GlucoseReading,
    LogEntry,
    PhysicalActivity,
    ProfileDocument,
    ProfileInfo,
    PumpSettingsSnapshot,
    ScheduleEntry,
    SourceClient,
    TimedValue,
    Treatment,
)
from src.reconcile.config_loader import SyncConfig, get_sync_config
from src.reconcile.entry_mapper import map_entries
from src.reconcile.profile_builder import build_profile
from src.reconcile.treatment_merger import merge_treatments
from src.reconcile.units import UnsupportedConversion, convert

__all__ = [
    "Bolus",
    "DestinationClient",
    "EventRecord",
    "Food",
    "GlucoseReading",
    "LogEntry",
    "PhysicalActivity",
    "ProfileDocument",
    "ProfileInfo",
    "PumpSettingsSnapshot",
    "ScheduleEntry",
    "SourceClient",
    "TimedValue",
    "Treatment",
    "SyncConfig",
    "get_sync_config",
    "build_profile",
    "merge_treatments",
    "map_entries",
    "convert",
    "UnsupportedConversion",
]
