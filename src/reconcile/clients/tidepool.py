"""Tidepool data API client (source side).

Authentication is a basic-auth login that returns a session token in the
``x-tidepool-session-token`` response header and the account's user id in
the JSON body.  Every data request sends that token back in the same header.

Environment variables (read via ``src.config.Settings``):
    TIDEPOOL_BASE_URL  — API base (default https://api.tidepool.org)
    TIDEPOOL_USERNAME  — account e-mail
    TIDEPOOL_PASSWORD  — account password

Endpoints used:
    POST /auth/login          — session token + user id
    GET  /data/{userId}       — device data filtered by ``type``, ``startDate``, ``endDate``

Tidepool types consumed:
    pumpSettings, bolus, food, physicalActivity, cbg
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import httpx

from src.reconcile.base import (
    Bolus,
    Food,
    GlucoseReading,
    PhysicalActivity,
    PumpSettingsSnapshot,
    ScheduleEntry,
    SourceClient,
    parse_iso_datetime,
    to_iso_utc,
)

logger = logging.getLogger("nightsync.reconcile.clients.tidepool")

DEFAULT_BASE_URL = "https://api.tidepool.org"
SESSION_HEADER = "x-tidepool-session-token"

_DURATION_SECONDS = {
    "seconds": 1,
    "minutes": 60,
    "hours": 3600,
}


class TidepoolAuthError(RuntimeError):
    """Raised when a login response carries no session token or user id."""


@dataclass(frozen=True)
class TidepoolSession:
    """An authenticated Tidepool session."""

    token: str
    user_id: str


class TidepoolClient(SourceClient):
    """Read pump settings, events and CGM data for one Tidepool account.

    Construct through ``TidepoolClientFactory.create()``, which logs in first.
    """

    def __init__(
        self,
        session: TidepoolSession,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            session:     Authenticated session from ``login``.
            base_url:    API base URL.
            http_client: Optional pre-configured httpx client (for testing).
        """
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client

    @property
    def user_id(self) -> str:
        return self._session.user_id

    # ------------------------------------------------------------------
    # SourceClient interface
    # ------------------------------------------------------------------

    async def get_pump_settings_history(
        self, since: datetime | None, till: datetime | None
    ) -> list[PumpSettingsSnapshot]:
        raw = await self._get_data("pumpSettings", since, till)
        return [self.normalize_pump_settings(r) for r in raw]

    async def get_bolus_events(
        self, since: datetime | None, till: datetime | None
    ) -> list[Bolus]:
        raw = await self._get_data("bolus", since, till)
        return [self.normalize_bolus(r) for r in raw]

    async def get_food_events(
        self, since: datetime | None, till: datetime | None
    ) -> list[Food]:
        raw = await self._get_data("food", since, till)
        return [self.normalize_food(r) for r in raw]

    async def get_physical_activity_events(
        self, since: datetime | None, till: datetime | None
    ) -> list[PhysicalActivity]:
        raw = await self._get_data("physicalActivity", since, till)
        return [self.normalize_physical_activity(r) for r in raw]

    async def get_glucose_readings(
        self, since: datetime | None, till: datetime | None
    ) -> list[GlucoseReading]:
        raw = await self._get_data("cbg", since, till)
        readings = []
        for record in raw:
            reading = self.normalize_glucose(record)
            if reading is not None:
                readings.append(reading)
        return readings

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize_pump_settings(self, raw: dict) -> PumpSettingsSnapshot:
        """Convert a Tidepool ``pumpSettings`` record to a PumpSettingsSnapshot.

        Tidepool reports per-schedule maps (``bgTargets``, ``carbRatios``,
        ``insulinSensitivities``) on some pumps and single lists
        (``bgTarget``, ``carbRatio``, ``insulinSensitivity``) on others.
        Single lists are filed under the active schedule name.
        """
        active = raw.get("activeSchedule")
        units = (raw.get("units") or {}).get("bg")

        return PumpSettingsSnapshot(
            active_schedule=active,
            device_time=(
                parse_iso_datetime(raw.get("time"))
                or parse_iso_datetime(raw.get("deviceTime"))
            ),
            units=units,
            basal_schedules=self._schedule_map(raw.get("basalSchedules"), "rate"),
            bg_targets=self._schedule_map(
                raw.get("bgTargets"), "target", raw.get("bgTarget"), active
            ),
            carb_ratios=self._schedule_map(
                raw.get("carbRatios"), "amount", raw.get("carbRatio"), active
            ),
            insulin_sensitivities=self._schedule_map(
                raw.get("insulinSensitivities"),
                "amount",
                raw.get("insulinSensitivity"),
                active,
            ),
        )

    def normalize_bolus(self, raw: dict) -> Bolus:
        duration_ms = self._safe_float(raw.get("duration"))
        return Bolus(
            time=parse_iso_datetime(raw.get("time")),
            normal=self._safe_float(raw.get("normal")),
            extended=self._safe_float(raw.get("extended")),
            duration=(
                timedelta(milliseconds=duration_ms) if duration_ms is not None else None
            ),
        )

    def normalize_food(self, raw: dict) -> Food:
        carbohydrate = (raw.get("nutrition") or {}).get("carbohydrate") or {}
        return Food(
            time=parse_iso_datetime(raw.get("time")),
            net_carbs=self._safe_float(carbohydrate.get("net")),
        )

    def normalize_physical_activity(self, raw: dict) -> PhysicalActivity:
        duration = raw.get("duration") or {}
        value = self._safe_float(duration.get("value"))
        factor = _DURATION_SECONDS.get(str(duration.get("units", "seconds")).lower())
        if value is not None and factor is None:
            logger.warning(
                "Tidepool: unknown activity duration unit %r", duration.get("units")
            )
        return PhysicalActivity(
            time=parse_iso_datetime(raw.get("time")),
            name=raw.get("name"),
            duration_seconds=value * factor if value is not None and factor else None,
        )

    def normalize_glucose(self, raw: dict) -> GlucoseReading | None:
        value = self._safe_float(raw.get("value"))
        if value is None:
            return None
        return GlucoseReading(
            time=parse_iso_datetime(raw.get("time")),
            value=value,
            units=raw.get("units") or "",
        )

    def _schedule_map(
        self,
        named: Any,
        value_key: str,
        single: Any = None,
        active: str | None = None,
    ) -> dict[str, list[ScheduleEntry]]:
        schedules: dict[str, list[ScheduleEntry]] = {}
        if isinstance(named, dict):
            for name, steps in named.items():
                schedules[name] = self._schedule_entries(steps, value_key)
        elif isinstance(single, list) and active:
            schedules[active] = self._schedule_entries(single, value_key)
        return schedules

    def _schedule_entries(self, steps: Any, value_key: str) -> list[ScheduleEntry]:
        entries = []
        for step in steps or []:
            if not isinstance(step, dict):
                continue
            value = self._safe_float(step.get(value_key))
            if value is None:
                continue
            entries.append(
                ScheduleEntry(offset_ms=self._safe_int(step.get("start")) or 0, value=value)
            )
        return entries

    # ------------------------------------------------------------------
    # Private HTTP helper
    # ------------------------------------------------------------------

    async def _get_data(
        self, data_type: str, since: datetime | None, till: datetime | None
    ) -> list[dict]:
        """Fetch one Tidepool data type for the session's user.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
        """
        url = f"{self._base_url}/data/{self._session.user_id}"
        params = {"type": data_type}
        if since is not None:
            params["startDate"] = to_iso_utc(since)
        if till is not None:
            params["endDate"] = to_iso_utc(till)
        headers = {SESSION_HEADER: self._session.token}

        logger.debug("Tidepool: GET %s type=%s", url, data_type)
        if self._http_client:
            response = await self._http_client.get(url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, params=params, headers=headers)

        response.raise_for_status()
        data = response.json()
        records = [r for r in data or [] if isinstance(r, dict)]
        logger.debug("Tidepool: %d %s records", len(records), data_type)
        return records


class TidepoolClientFactory:
    """Log in to Tidepool and hand out an authenticated ``TidepoolClient``."""

    def __init__(
        self,
        username: str,
        password: str,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._username = username
        self._password = password
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client

    async def login(self) -> TidepoolSession:
        """Authenticate with basic auth and return the session.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            TidepoolAuthError:     If the response lacks a token or user id.
        """
        url = f"{self._base_url}/auth/login"
        auth = (self._username, self._password)
        logger.info("Tidepool: logging in as %s", self._username)

        if self._http_client:
            response = await self._http_client.post(url, auth=auth)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(url, auth=auth)

        response.raise_for_status()
        token = response.headers.get(SESSION_HEADER)
        user_id = (response.json() or {}).get("userid")
        if not token or not user_id:
            raise TidepoolAuthError(
                "Tidepool login response did not include a session token and user id"
            )
        return TidepoolSession(token=token, user_id=user_id)

    async def create(self) -> TidepoolClient:
        session = await self.login()
        return TidepoolClient(
            session, base_url=self._base_url, http_client=self._http_client
        )
