"""Data model and client interfaces for the Tidepool → Nightscout reconciler.

Source-side records (pump settings, bolus / food / activity events, glucose
readings) are what the Tidepool client returns.  Destination-side records
(profile documents, treatments, log entries) are what the Nightscout client
accepts.  The transforms in ``profile_builder``, ``treatment_merger`` and
``entry_mapper`` convert between the two and never touch the network.

All timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

logger = logging.getLogger("nightsync.reconcile")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def to_epoch_ms(value: datetime) -> int:
    """Return whole epoch milliseconds for an aware (or naive-UTC) datetime."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def to_iso_utc(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (
        value.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def parse_iso_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Naive strings are assumed to be UTC.  Returns None if the value is None
    or unparseable.
    """
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        logger.warning("Could not parse datetime string: %r", value)
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Source records (Tidepool)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScheduleEntry:
    """One time-of-day step of a named schedule.

    Attributes:
        offset_ms: Milliseconds since local midnight when this step starts.
        value:     Rate, target, ratio or sensitivity in effect from offset_ms.
    """

    offset_ms: int
    value: float


@dataclass(frozen=True)
class PumpSettingsSnapshot:
    """One historical pump configuration record.

    Attributes:
        active_schedule:       Name of the schedule the pump was running.
        device_time:           UTC timestamp of the settings record.
        units:                 Glucose unit label reported with the settings.
        basal_schedules:       Schedule name → basal rate steps (U/h).
        bg_targets:            Schedule name → single BG target steps.
        carb_ratios:           Schedule name → carb ratio steps (g/U).
        insulin_sensitivities: Schedule name → sensitivity steps.
    """

    active_schedule: str | None = None
    device_time: datetime | None = None
    units: str | None = None
    basal_schedules: dict[str, list[ScheduleEntry]] = field(default_factory=dict)
    bg_targets: dict[str, list[ScheduleEntry]] = field(default_factory=dict)
    carb_ratios: dict[str, list[ScheduleEntry]] = field(default_factory=dict)
    insulin_sensitivities: dict[str, list[ScheduleEntry]] = field(default_factory=dict)


@dataclass(frozen=True)
class Bolus:
    """Insulin bolus event.  ``extended`` and ``duration`` describe the square part."""

    time: datetime | None
    normal: float | None = None
    extended: float | None = None
    duration: timedelta | None = None


@dataclass(frozen=True)
class Food:
    """Carbohydrate intake event."""

    time: datetime | None
    net_carbs: float | None = None


@dataclass(frozen=True)
class PhysicalActivity:
    """Exercise event.  ``duration_seconds`` is already normalized to seconds."""

    time: datetime | None
    name: str | None = None
    duration_seconds: float | None = None


EventRecord = Bolus | Food | PhysicalActivity


@dataclass(frozen=True)
class GlucoseReading:
    """One CGM sample in the unit the source reported it in."""

    time: datetime | None
    value: float
    units: str


# ---------------------------------------------------------------------------
# Destination records (Nightscout)
# ---------------------------------------------------------------------------


@dataclass
class TimedValue:
    """One step of a profile schedule in Nightscout's shape.

    Attributes:
        time:            ``HH:MM`` time of day.
        time_as_seconds: Whole seconds since midnight.
        value:           Locale-invariant decimal string.
    """

    time: str
    time_as_seconds: int
    value: str

    def to_dict(self) -> dict[str, str]:
        return {
            "time": self.time,
            "timeAsSeconds": str(self.time_as_seconds),
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "TimedValue":
        return cls(
            time=str(raw.get("time", "00:00")),
            time_as_seconds=int(float(raw.get("timeAsSeconds", 0) or 0)),
            value=str(raw.get("value", "0")),
        )


@dataclass
class ProfileInfo:
    """One named profile inside a Nightscout profile document's ``store``."""

    basal: list[TimedValue] = field(default_factory=list)
    target_low: list[TimedValue] = field(default_factory=list)
    target_high: list[TimedValue] = field(default_factory=list)
    carbratio: list[TimedValue] = field(default_factory=list)
    sens: list[TimedValue] = field(default_factory=list)
    dia: float = 3.0
    carbs_hr: float = 20.0
    delay: float = 20.0
    timezone: str = "UTC"
    units: str | None = None
    start_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "dia": self.dia,
            "carbs_hr": self.carbs_hr,
            "delay": self.delay,
            "timezone": self.timezone,
            "basal": [v.to_dict() for v in self.basal],
            "target_low": [v.to_dict() for v in self.target_low],
            "target_high": [v.to_dict() for v in self.target_high],
            "carbratio": [v.to_dict() for v in self.carbratio],
            "sens": [v.to_dict() for v in self.sens],
        }
        if self.units is not None:
            out["units"] = self.units
        if self.start_date is not None:
            out["startDate"] = to_iso_utc(self.start_date)
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> "ProfileInfo":
        def _steps(key: str) -> list[TimedValue]:
            return [TimedValue.from_dict(v) for v in raw.get(key) or [] if isinstance(v, dict)]

        return cls(
            basal=_steps("basal"),
            target_low=_steps("target_low"),
            target_high=_steps("target_high"),
            carbratio=_steps("carbratio"),
            sens=_steps("sens"),
            dia=float(raw.get("dia", 3.0) or 3.0),
            carbs_hr=float(raw.get("carbs_hr", 20.0) or 20.0),
            delay=float(raw.get("delay", 20.0) or 20.0),
            timezone=raw.get("timezone") or "UTC",
            units=raw.get("units"),
            start_date=parse_iso_datetime(raw.get("startDate")),
        )


@dataclass
class ProfileDocument:
    """A Nightscout profile document.

    Attributes:
        default_profile: Name of the store entry Nightscout should activate.
        start_date:      Timestamp of the pump settings this was built from.
        units:           Glucose unit label.
        mills:           Stringified epoch-ms of ``start_date``; idempotency key.
        id:              Remote ``_id``, set only after matching an existing document.
        store:           Schedule name → ProfileInfo, in first-seen order.
    """

    default_profile: str | None
    start_date: datetime | None
    units: str | None
    mills: str
    id: str | None = None
    store: dict[str, ProfileInfo] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "defaultProfile": self.default_profile,
            "mills": self.mills,
            "units": self.units,
            "store": {name: info.to_dict() for name, info in self.store.items()},
        }
        if self.start_date is not None:
            out["startDate"] = to_iso_utc(self.start_date)
        if self.id is not None:
            out["_id"] = self.id
        return {k: v for k, v in out.items() if v is not None}

    @classmethod
    def from_dict(cls, raw: dict) -> "ProfileDocument":
        store_raw = raw.get("store") or {}
        return cls(
            default_profile=raw.get("defaultProfile"),
            start_date=parse_iso_datetime(raw.get("startDate")),
            units=raw.get("units"),
            mills="" if raw.get("mills") is None else str(raw.get("mills")),
            id=raw.get("_id"),
            store={
                name: ProfileInfo.from_dict(info)
                for name, info in store_raw.items()
                if isinstance(info, dict)
            },
        )


@dataclass
class Treatment:
    """A Nightscout treatment, built by merging same-timestamp source events.

    ``duration`` is in minutes; ``relative`` is the extended part of a bolus.
    """

    created_at: datetime
    entered_by: str
    insulin: float | None = None
    duration: float | None = None
    relative: float | None = None
    carbs: float | None = None
    event_type: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out = {
            "eventType": self.event_type,
            "created_at": to_iso_utc(self.created_at),
            "insulin": self.insulin,
            "duration": self.duration,
            "relative": self.relative,
            "carbs": self.carbs,
            "notes": self.notes,
            "enteredBy": self.entered_by,
        }
        return {k: v for k, v in out.items() if v is not None}


@dataclass
class LogEntry:
    """A Nightscout ``sgv`` entry."""

    sgv: int
    date: int
    date_string: str
    device: str = "Tidepool"
    direction: str = "Flat"
    noise: int = 1
    type: str = "sgv"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "sgv": self.sgv,
            "date": self.date,
            "dateString": self.date_string,
            "device": self.device,
            "direction": self.direction,
            "noise": self.noise,
        }


@dataclass(frozen=True)
class DestinationStatus:
    """Subset of the Nightscout status document the reconciler needs."""

    units: str | None = None


# ---------------------------------------------------------------------------
# Client interfaces
# ---------------------------------------------------------------------------


class SourceClient(ABC):
    """Read side: an authenticated session against the source API.

    All methods take an optional ``[since, till]`` window; ``None`` leaves
    that side open.  Transport and authentication errors propagate unchanged.
    """

    @abstractmethod
    async def get_pump_settings_history(
        self, since: datetime | None, till: datetime | None
    ) -> list[PumpSettingsSnapshot]:
        """Return every pump settings snapshot in the window."""

    @abstractmethod
    async def get_bolus_events(
        self, since: datetime | None, till: datetime | None
    ) -> list[Bolus]:
        """Return bolus events in the window."""

    @abstractmethod
    async def get_food_events(
        self, since: datetime | None, till: datetime | None
    ) -> list[Food]:
        """Return food events in the window."""

    @abstractmethod
    async def get_physical_activity_events(
        self, since: datetime | None, till: datetime | None
    ) -> list[PhysicalActivity]:
        """Return physical activity events in the window."""

    @abstractmethod
    async def get_glucose_readings(
        self, since: datetime | None, till: datetime | None
    ) -> list[GlucoseReading]:
        """Return CGM readings in the window."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_float(value: object) -> float | None:
        """Safely coerce a value to float, returning None on failure."""
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _safe_int(value: object) -> int | None:
        """Safely coerce a value to int, returning None on failure."""
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class DestinationClient(ABC):
    """Write side: the Nightscout REST API."""

    @abstractmethod
    async def list_profiles(self) -> list[ProfileDocument]:
        """Return all stored profile documents."""

    @abstractmethod
    async def upsert_profile(self, profile: ProfileDocument) -> ProfileDocument:
        """Create or replace a profile document (replace when ``id`` is set)."""

    @abstractmethod
    async def append_treatments(self, treatments: list[Treatment]) -> list[dict]:
        """Append treatments; returns the stored documents as echoed by the server."""

    @abstractmethod
    async def append_entries(self, entries: list[LogEntry]) -> None:
        """Append glucose entries."""

    @abstractmethod
    async def get_status(self) -> DestinationStatus:
        """Return the server status, including its configured glucose unit."""
