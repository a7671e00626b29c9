"""Tests for mapping CGM readings to Nightscout entries."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.reconcile.base import GlucoseReading
from src.reconcile.entry_mapper import map_entries
from src.reconcile.tests.conftest import at_ms
from src.reconcile.units import UnsupportedConversion


class TestMapEntries:
    def test_same_unit_passthrough(self) -> None:
        entries = map_entries([GlucoseReading(time=at_ms(0), value=120, units="mg/dl")], "mg/dl")
        assert entries[0].sgv == 120

    def test_mgdl_to_mmol_rounds(self) -> None:
        entries = map_entries([GlucoseReading(time=at_ms(0), value=180, units="mg/dl")], "mmol/l")
        assert entries[0].sgv == 10

    def test_mmol_to_mgdl(self) -> None:
        entries = map_entries([GlucoseReading(time=at_ms(0), value=5.5, units="mmol/L")], "mg/dl")
        assert entries[0].sgv == 99

    def test_fixed_fields(self) -> None:
        when = datetime(2026, 3, 2, 8, 15, 30, 250000, tzinfo=timezone.utc)
        entry = map_entries([GlucoseReading(time=when, value=100, units="mg/dl")], "mg/dl")[0]
        assert entry.type == "sgv"
        assert entry.device == "Tidepool"
        assert entry.direction == "Flat"
        assert entry.noise == 1
        assert entry.date == int(when.timestamp() * 1000)
        assert entry.date_string == "2026-03-02T08:15:30.250Z"

    def test_device_and_noise_overrides(self) -> None:
        entry = map_entries(
            [GlucoseReading(time=at_ms(0), value=100, units="mg/dl")],
            "mg/dl",
            device="pump",
            noise=2,
        )[0]
        assert (entry.device, entry.noise) == ("pump", 2)

    def test_untimed_readings_dropped(self) -> None:
        assert map_entries([GlucoseReading(time=None, value=100, units="mg/dl")], "mg/dl") == []

    def test_empty_input(self) -> None:
        assert map_entries([], "mg/dl") == []

    def test_unknown_reading_unit_raises(self) -> None:
        with pytest.raises(UnsupportedConversion):
            map_entries([GlucoseReading(time=at_ms(0), value=1, units="mg")], "mg/dl")

    def test_unknown_destination_unit_raises(self, readings) -> None:
        with pytest.raises(UnsupportedConversion):
            map_entries(readings, "furlongs")

    def test_to_dict(self) -> None:
        body = map_entries([GlucoseReading(time=at_ms(60_000), value=120, units="mg/dl")], "mg/dl")[0].to_dict()
        assert body == {
            "type": "sgv",
            "sgv": 120,
            "date": 60_000,
            "dateString": "1970-01-01T00:01:00.000Z",
            "device": "Tidepool",
            "direction": "Flat",
            "noise": 1,
        }
