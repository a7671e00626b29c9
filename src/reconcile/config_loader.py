"""Load, validate, and hot-reload the reconciler's sync configuration.

The config lives in ``sync_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_sync_config()`` to re-read from
disk after an operator edit; no restart required.

Usage::

    from src.reconcile.config_loader import get_sync_config

    config = get_sync_config()
    config.profile.target_low_offset   # 80.0
    config.entries.default_units       # "mg/dl"
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from src.reconcile.profile_builder import ProfileDefaults
from src.reconcile.units import is_supported

logger = logging.getLogger("nightsync.reconcile.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sync_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class ProfileConfig:
    """Profile-building constants."""

    target_low_offset: float
    dia_hours: float = 3.0
    carbs_hr: float = 20.0
    delay: float = 20.0
    timezone: str = "UTC"

    def store_defaults(self) -> ProfileDefaults:
        return ProfileDefaults(
            dia=self.dia_hours,
            carbs_hr=self.carbs_hr,
            delay=self.delay,
            timezone=self.timezone,
        )


@dataclass
class EntriesConfig:
    """Glucose entry settings."""

    default_units: str = "mg/dl"
    device: str = "Tidepool"
    noise: int = 1


@dataclass
class TreatmentsConfig:
    """Treatment settings."""

    entered_by: str = "Tidepool"


@dataclass
class SyncConfig:
    """Complete, validated sync configuration.

    Attributes:
        version:    Config schema version string.
        profile:    Profile-building constants.
        entries:    Glucose entry settings.
        treatments: Treatment settings.
    """

    version: str
    profile: ProfileConfig
    entries: EntriesConfig
    treatments: TreatmentsConfig
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when sync_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> SyncConfig:
    """Validate the raw YAML dict and construct a SyncConfig.

    Collects every problem before raising so an operator sees them all at once.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, name: str, default: float | None) -> float:
        value = section.get(key, default)
        if value is None:
            errors.append(f"Missing required key '{key}' in section '{name}'")
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError):
            errors.append(f"{name}.{key} must be a number, got {value!r}")
            return 0.0

    version = str(raw.get("version", "1.0"))

    # ── Profile ──
    profile_raw = raw.get("profile") or {}
    if not isinstance(profile_raw, dict):
        errors.append("'profile' must be a mapping")
        profile_raw = {}
    target_low_offset = _number(profile_raw, "target_low_offset", "profile", None)
    if target_low_offset < 0:
        errors.append(
            f"profile.target_low_offset = {target_low_offset} must not be negative"
        )
    dia_hours = _number(profile_raw, "dia_hours", "profile", 3.0)
    if dia_hours <= 0:
        errors.append(f"profile.dia_hours = {dia_hours} must be positive")
    profile = ProfileConfig(
        target_low_offset=target_low_offset,
        dia_hours=dia_hours,
        carbs_hr=_number(profile_raw, "carbs_hr", "profile", 20.0),
        delay=_number(profile_raw, "delay", "profile", 20.0),
        timezone=str(profile_raw.get("timezone", "UTC")),
    )

    # ── Entries ──
    entries_raw = raw.get("entries") or {}
    if not isinstance(entries_raw, dict):
        errors.append("'entries' must be a mapping")
        entries_raw = {}
    default_units = str(entries_raw.get("default_units", "mg/dl"))
    if not is_supported(default_units):
        errors.append(
            f"entries.default_units = {default_units!r} is not a recognized glucose unit"
        )
    entries = EntriesConfig(
        default_units=default_units,
        device=str(entries_raw.get("device", "Tidepool")),
        noise=int(_number(entries_raw, "noise", "entries", 1)),
    )

    # ── Treatments ──
    treatments_raw = raw.get("treatments") or {}
    if not isinstance(treatments_raw, dict):
        errors.append("'treatments' must be a mapping")
        treatments_raw = {}
    treatments = TreatmentsConfig(
        entered_by=str(treatments_raw.get("entered_by", "Tidepool")),
    )

    if errors:
        raise ConfigValidationError(
            f"sync_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SyncConfig(
        version=version,
        profile=profile,
        entries=entries,
        treatments=treatments,
        _raw=raw,
    )


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load and validate the sync config from disk.

    Args:
        path: Override path to YAML. Uses the bundled sync_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded sync config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: SyncConfig | None = None
_config_lock = threading.Lock()


def get_sync_config() -> SyncConfig:
    """Return the global SyncConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_sync_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_sync_config()
    return _config


def reload_sync_config(path: Path | None = None) -> SyncConfig:
    """Reload the sync config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_sync_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded sync config: %s → %s", old_version, new_config.version)
    return new_config
