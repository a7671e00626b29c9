"""Merge bolus, food and physical activity streams into Nightscout treatments.

Events are keyed by exact timestamp.  Within each stream only the first
event at a given timestamp is kept.  The streams are then applied in a fixed
order:

1. Every bolus seeds a treatment, picking up carbs from a food event at the
   same timestamp if there is one.
2. Every food event whose timestamp has no bolus becomes a carbs-only
   treatment.
3. Every activity replaces whatever is at its timestamp with an
   ``Exercise`` treatment.  A bolus or meal at the exact same instant is
   dropped.

This module is pure: no I/O, no logging.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, TypeVar

from src.reconcile.base import Bolus, EventRecord, Food, PhysicalActivity, Treatment

DEFAULT_ENTERED_BY = "Tidepool"
EXERCISE_EVENT_TYPE = "Exercise"

_E = TypeVar("_E", bound=EventRecord)


def first_by_time(events: Iterable[_E]) -> dict[datetime, _E]:
    """Index events by timestamp, dropping untimed ones and keeping the first per key."""
    indexed: dict[datetime, _E] = {}
    for event in events:
        if event.time is None:
            continue
        indexed.setdefault(event.time, event)
    return indexed


def merge_treatments(
    boluses: Iterable[Bolus],
    foods: Iterable[Food],
    activities: Iterable[PhysicalActivity],
    entered_by: str = DEFAULT_ENTERED_BY,
) -> list[Treatment]:
    """Collapse the three event streams into one treatment per timestamp.

    Args:
        boluses:    Bolus events in source order.
        foods:      Food events in source order.
        activities: Physical activity events in source order.
        entered_by: Attribution label written on every treatment.

    Returns:
        Treatments in first-seen timestamp order.
    """
    bolus_by_time = first_by_time(boluses)
    food_by_time = first_by_time(foods)
    activity_by_time = first_by_time(activities)

    merged: dict[datetime, Treatment] = {}

    for time, bolus in bolus_by_time.items():
        food = food_by_time.get(time)
        merged[time] = Treatment(
            created_at=time,
            entered_by=entered_by,
            insulin=bolus.normal,
            duration=(
                bolus.duration.total_seconds() / 60
                if bolus.duration is not None
                else None
            ),
            relative=bolus.extended,
            carbs=food.net_carbs if food is not None else None,
        )

    for time, food in food_by_time.items():
        if time in merged:
            continue
        merged[time] = Treatment(
            created_at=time,
            entered_by=entered_by,
            carbs=food.net_carbs,
        )

    for time, activity in activity_by_time.items():
        merged[time] = Treatment(
            created_at=time,
            entered_by=entered_by,
            event_type=EXERCISE_EVENT_TYPE,
            notes=activity.name,
            duration=(
                activity.duration_seconds / 60
                if activity.duration_seconds is not None
                else None
            ),
        )

    return list(merged.values())
