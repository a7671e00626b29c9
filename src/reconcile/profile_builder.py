"""Build Nightscout profile documents from Tidepool pump settings.

The newest snapshot in the settings history becomes one profile document.
Each of its four schedule maps (basal, BG target, carb ratio, insulin
sensitivity) is flattened into ``HH:MM`` / seconds / value steps under the
store entry of the same schedule name.

Nightscout has no single "target" field, so every source target becomes a
low/high pair: the low bound is the configured ``target_low_offset`` and
the high bound is ``target_low_offset + target``.

This module is pure: no I/O, no logging.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable

from src.reconcile.base import (
    ProfileDocument,
    ProfileInfo,
    PumpSettingsSnapshot,
    ScheduleEntry,
    TimedValue,
    to_epoch_ms,
)

_MS_PER_MINUTE = 60_000


@dataclass(frozen=True)
class ProfileDefaults:
    """Store-entry fields the source has no equivalent for."""

    dia: float = 3.0
    carbs_hr: float = 20.0
    delay: float = 20.0
    timezone: str = "UTC"


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_decimal(value: float | int | Decimal) -> str:
    """Render a number as a plain fixed-point string.

    Always uses ``.`` as the decimal point, never a grouping separator or an
    exponent, and strips trailing zeros: ``80.0 -> "80"``, ``0.850 -> "0.85"``.
    """
    d = value if isinstance(value, Decimal) else Decimal(str(value))
    text = format(d.normalize(), "f")
    return "0" if text == "-0" else text


def format_time_of_day(offset_ms: int) -> str:
    """``5_400_000 -> "01:30"``.  Offsets are expected to be below 24h."""
    minutes = offset_ms // _MS_PER_MINUTE
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _timed_value(entry: ScheduleEntry, value: float | Decimal) -> TimedValue:
    return TimedValue(
        time=format_time_of_day(entry.offset_ms),
        time_as_seconds=entry.offset_ms // 1000,
        value=format_decimal(value),
    )


# ---------------------------------------------------------------------------
# Snapshot selection
# ---------------------------------------------------------------------------


def select_latest_snapshot(
    history: Iterable[PumpSettingsSnapshot],
) -> PumpSettingsSnapshot | None:
    """Return the snapshot with the latest ``device_time``.

    Ties go to the later one in input order.  Snapshots without a timestamp
    only win when nothing else has one.
    """
    latest: PumpSettingsSnapshot | None = None
    for snapshot in history:
        if latest is None:
            latest = snapshot
            continue
        if snapshot.device_time is None:
            if latest.device_time is None:
                latest = snapshot
            continue
        if latest.device_time is None or snapshot.device_time >= latest.device_time:
            latest = snapshot
    return latest


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def build_profile(
    history: Iterable[PumpSettingsSnapshot],
    target_low_offset: float,
    defaults: ProfileDefaults | None = None,
    now: Callable[[], datetime] | None = None,
) -> ProfileDocument | None:
    """Build a profile document from the newest snapshot in ``history``.

    Args:
        history:           Pump settings snapshots, in source order.
        target_low_offset: Low bound written for every BG target step.
        defaults:          Store-entry fields with no source equivalent.
        now:               Clock used for ``mills`` when the selected snapshot
                           has no timestamp.

    Returns:
        The profile document, or None when ``history`` is empty.
    """
    snapshot = select_latest_snapshot(history)
    if snapshot is None:
        return None

    defaults = defaults or ProfileDefaults()
    clock = now or (lambda: datetime.now(timezone.utc))
    key_time = snapshot.device_time or clock()

    document = ProfileDocument(
        default_profile=snapshot.active_schedule,
        start_date=snapshot.device_time,
        units=snapshot.units,
        mills=str(to_epoch_ms(key_time)),
    )

    def _info(name: str) -> ProfileInfo:
        info = document.store.get(name)
        if info is None:
            info = ProfileInfo(
                dia=defaults.dia,
                carbs_hr=defaults.carbs_hr,
                delay=defaults.delay,
                timezone=defaults.timezone,
                units=snapshot.units,
                start_date=snapshot.device_time,
            )
            document.store[name] = info
        return info

    for name, entries in snapshot.basal_schedules.items():
        info = _info(name)
        info.basal.extend(_timed_value(e, e.value) for e in entries)

    low = Decimal(str(target_low_offset))
    for name, entries in snapshot.bg_targets.items():
        info = _info(name)
        for entry in entries:
            info.target_low.append(_timed_value(entry, low))
            info.target_high.append(_timed_value(entry, low + Decimal(str(entry.value))))

    for name, entries in snapshot.carb_ratios.items():
        info = _info(name)
        info.carbratio.extend(_timed_value(e, e.value) for e in entries)

    for name, entries in snapshot.insulin_sensitivities.items():
        info = _info(name)
        info.sens.extend(_timed_value(e, e.value) for e in entries)

    return document
