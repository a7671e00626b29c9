"""Tests for building Nightscout profile documents from pump settings."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.reconcile.base import PumpSettingsSnapshot, ScheduleEntry
from src.reconcile.profile_builder import (
    ProfileDefaults,
    build_profile,
    format_decimal,
    format_time_of_day,
    select_latest_snapshot,
)


class TestFormatting:
    @pytest.mark.parametrize(
        ("offset_ms", "expected"),
        [(0, "00:00"), (5_400_000, "01:30"), (1_800_000, "00:30"), (86_340_000, "23:59")],
    )
    def test_time_of_day(self, offset_ms: int, expected: str) -> None:
        assert format_time_of_day(offset_ms) == expected

    def test_time_of_day_truncates_seconds(self) -> None:
        assert format_time_of_day(5_459_999) == "01:30"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (80.0, "80"),
            (200, "200"),
            (0.85, "0.85"),
            (0.025, "0.025"),
            (1234567.5, "1234567.5"),
            (0.00001, "0.00001"),
            (Decimal("12.50"), "12.5"),
            (-0.0, "0"),
        ],
    )
    def test_decimal_is_plain_fixed_point(self, value: float, expected: str) -> None:
        assert format_decimal(value) == expected


class TestSnapshotSelection:
    def test_latest_device_time_wins(self, older_snapshot, newer_snapshot) -> None:
        assert select_latest_snapshot([newer_snapshot, older_snapshot]) is newer_snapshot
        assert select_latest_snapshot([older_snapshot, newer_snapshot]) is newer_snapshot

    def test_tie_goes_to_last(self) -> None:
        when = datetime(2026, 3, 1, tzinfo=timezone.utc)
        first = PumpSettingsSnapshot(active_schedule="A", device_time=when)
        second = PumpSettingsSnapshot(active_schedule="B", device_time=when)
        assert select_latest_snapshot([first, second]) is second

    def test_untimed_snapshot_loses_to_timed(self, older_snapshot) -> None:
        untimed = PumpSettingsSnapshot(active_schedule="X")
        assert select_latest_snapshot([older_snapshot, untimed]) is older_snapshot
        assert select_latest_snapshot([untimed, older_snapshot]) is older_snapshot

    def test_empty_history(self) -> None:
        assert select_latest_snapshot([]) is None


class TestBuildProfile:
    def test_no_history_produces_no_profile(self) -> None:
        assert build_profile([], 80) is None

    def test_selects_later_snapshot(self, older_snapshot, newer_snapshot) -> None:
        doc = build_profile([newer_snapshot, older_snapshot], 80)
        assert doc.default_profile == "Standard"
        assert "Old" not in doc.store

    def test_header_fields(self, newer_snapshot) -> None:
        doc = build_profile([newer_snapshot], 80)
        expected_ms = int(newer_snapshot.device_time.timestamp()) * 1000
        assert doc.mills == str(expected_ms)
        assert doc.units == "mg/dL"
        assert doc.start_date == newer_snapshot.device_time
        assert doc.id is None

    def test_basal_entry_time_and_seconds(self, newer_snapshot) -> None:
        doc = build_profile([newer_snapshot], 80)
        step = doc.store["Standard"].basal[1]
        assert step.time == "01:30"
        assert step.time_as_seconds == 5400
        assert step.to_dict() == {"time": "01:30", "timeAsSeconds": "5400", "value": "0.9"}

    def test_seconds_truncate(self) -> None:
        snapshot = PumpSettingsSnapshot(
            device_time=datetime(2026, 1, 1, tzinfo=timezone.utc),
            basal_schedules={"A": [ScheduleEntry(offset_ms=1999, value=1)]},
        )
        assert build_profile([snapshot], 80).store["A"].basal[0].time_as_seconds == 1

    def test_target_becomes_low_high_band(self, newer_snapshot) -> None:
        info = build_profile([newer_snapshot], 80).store["Standard"]
        assert [v.value for v in info.target_low] == ["80"]
        assert [v.value for v in info.target_high] == ["200"]
        assert info.target_low[0].time == info.target_high[0].time == "00:00"
        assert info.target_low[0].time_as_seconds == info.target_high[0].time_as_seconds

    def test_fractional_target_sum_is_exact(self) -> None:
        snapshot = PumpSettingsSnapshot(
            device_time=datetime(2026, 1, 1, tzinfo=timezone.utc),
            bg_targets={"A": [ScheduleEntry(offset_ms=0, value=0.2)]},
        )
        info = build_profile([snapshot], 0.1).store["A"]
        assert info.target_low[0].value == "0.1"
        assert info.target_high[0].value == "0.3"

    def test_carb_ratio_and_sensitivity(self, newer_snapshot) -> None:
        doc = build_profile([newer_snapshot], 80)
        assert doc.store["Standard"].carbratio[0].value == "10"
        assert doc.store["Standard"].sens[0].value == "45"
        assert doc.store["Sick"].sens[0].time == "01:00"

    def test_every_schedule_name_appears_in_first_seen_order(self, newer_snapshot) -> None:
        doc = build_profile([newer_snapshot], 80)
        assert list(doc.store) == ["Standard", "Weekend", "Sick"]
        assert doc.store["Sick"].basal == []
        assert doc.store["Weekend"].target_low == []

    def test_schedule_only_in_later_map_is_created(self) -> None:
        snapshot = PumpSettingsSnapshot(
            device_time=datetime(2026, 1, 1, tzinfo=timezone.utc),
            carb_ratios={"Only": [ScheduleEntry(offset_ms=0, value=12)]},
        )
        doc = build_profile([snapshot], 80)
        assert list(doc.store) == ["Only"]

    def test_store_defaults_applied(self, newer_snapshot) -> None:
        defaults = ProfileDefaults(dia=4.5, carbs_hr=30, delay=15, timezone="Europe/Prague")
        info = build_profile([newer_snapshot], 80, defaults=defaults).store["Standard"]
        assert info.dia == 4.5
        assert info.timezone == "Europe/Prague"
        assert info.units == "mg/dL"

    def test_missing_timestamp_falls_back_to_clock(self) -> None:
        snapshot = PumpSettingsSnapshot(active_schedule="A")
        fixed = datetime(2026, 1, 1, tzinfo=timezone.utc)
        doc = build_profile([snapshot], 80, now=lambda: fixed)
        assert doc.mills == str(int(fixed.timestamp()) * 1000)
        assert doc.start_date is None

    def test_to_dict_shape(self, newer_snapshot) -> None:
        body = build_profile([newer_snapshot], 80).to_dict()
        assert body["defaultProfile"] == "Standard"
        assert body["startDate"] == "2026-03-02T08:00:00.000Z"
        assert "_id" not in body
        store = body["store"]["Standard"]
        assert store["target_high"] == [{"time": "00:00", "timeAsSeconds": "0", "value": "200"}]
        assert set(store) >= {"dia", "carbs_hr", "delay", "timezone", "basal", "sens", "carbratio"}
