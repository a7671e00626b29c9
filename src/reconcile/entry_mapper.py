"""Map Tidepool CGM readings to Nightscout ``sgv`` entries."""

from __future__ import annotations

from typing import Iterable

from src.reconcile.base import GlucoseReading, LogEntry, to_epoch_ms, to_iso_utc
from src.reconcile.units import convert

DEFAULT_DEVICE = "Tidepool"
# Trend is not computed; Nightscout's label for a steady reading.
DEFAULT_DIRECTION = "Flat"
DEFAULT_NOISE = 1


def map_entries(
    readings: Iterable[GlucoseReading],
    destination_units: str,
    device: str = DEFAULT_DEVICE,
    noise: int = DEFAULT_NOISE,
) -> list[LogEntry]:
    """Convert readings into whole-number entries in ``destination_units``.

    Readings without a timestamp are dropped.  Callers must skip the write
    when the result is empty.

    Raises:
        UnsupportedConversion: If a reading's unit or ``destination_units``
            is not a recognized glucose unit.
    """
    entries: list[LogEntry] = []
    for reading in readings:
        if reading.time is None:
            continue
        value = convert(reading.units, destination_units, reading.value)
        entries.append(
            LogEntry(
                sgv=int(round(value)),
                date=to_epoch_ms(reading.time),
                date_string=to_iso_utc(reading.time),
                device=device,
                direction=DEFAULT_DIRECTION,
                noise=noise,
            )
        )
    return entries
