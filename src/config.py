"""Application configuration loaded from environment variables."""

import logging
import sys
from datetime import datetime
from functools import lru_cache

from pydantic_settings import BaseSettings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Nightsync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Tidepool (source) ---
    tidepool_base_url: str = "https://api.tidepool.org"
    tidepool_username: str
    tidepool_password: str  # never logged

    # --- Nightscout (destination) ---
    nightscout_base_url: str
    nightscout_api_key: str  # sent as token, hashed into api-secret

    # --- Sync window override ---
    sync_since: datetime | None = None
    sync_till: datetime | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def configure_logging(level: str = "INFO") -> None:
    """Send every ``nightsync.*`` logger to stdout at ``level``."""
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    logging.getLogger().setLevel(level.upper())
