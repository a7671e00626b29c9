"""Glucose unit conversion between mg/dL and mmol/L.

Recognized labels are matched case-insensitively: ``mg/dl``, ``mmol/l`` and
``mmol`` (the last two are synonyms).  Conversion within a family is the
identity.
"""

from __future__ import annotations

#: mg/dL per mmol/L of glucose.
MGDL_PER_MMOLL = 18.01559

MGDL = "mg/dl"
MMOLL = "mmol/l"

_UNIT_FAMILIES: dict[str, str] = {
    "mg/dl": MGDL,
    "mmol/l": MMOLL,
    "mmol": MMOLL,
}


class UnsupportedConversion(ValueError):
    """Raised when either side of a conversion is not a recognized glucose unit."""

    def __init__(self, source_unit: str | None, target_unit: str | None) -> None:
        self.source_unit = source_unit
        self.target_unit = target_unit
        super().__init__(
            f"Unsupported glucose unit conversion: {source_unit!r} -> {target_unit!r}"
        )


def normalize_unit(unit: str | None) -> str | None:
    """Return the canonical family label for a unit string, or None if unknown."""
    if not unit:
        return None
    return _UNIT_FAMILIES.get(unit.strip().lower())


def is_supported(unit: str | None) -> bool:
    return normalize_unit(unit) is not None


def convert(source_unit: str | None, target_unit: str | None, value: float) -> float:
    """Convert a glucose value from ``source_unit`` to ``target_unit``.

    Raises:
        UnsupportedConversion: If either unit is not recognized.
    """
    source = normalize_unit(source_unit)
    target = normalize_unit(target_unit)
    if source is None or target is None:
        raise UnsupportedConversion(source_unit, target_unit)

    if source == target:
        return value
    if source == MGDL:
        return value / MGDL_PER_MMOLL
    return value * MGDL_PER_MMOLL
