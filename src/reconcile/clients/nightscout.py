"""Nightscout REST API client (destination side).

Reads authenticate with the API key as a ``token`` query argument; writes
additionally send ``api-secret: sha1_hex(api_key)``.

Environment variables (read via ``src.config.Settings``):
    NIGHTSCOUT_BASE_URL — site root, e.g. https://my-site.herokuapp.com
    NIGHTSCOUT_API_KEY  — API secret / access token

Endpoints used:
    GET  /api/v1/profile      — stored profile documents
    PUT  /api/v1/profile      — create or replace a profile document
    GET  /api/v1/treatments   — stored treatments (``find`` / ``count`` filters)
    POST /api/v1/treatments   — append treatments
    POST /api/v1/entries      — append sgv entries
    GET  /api/v1/status.json  — server status, incl. configured glucose unit
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

import httpx

from src.reconcile.base import (
    DestinationClient,
    DestinationStatus,
    LogEntry,
    ProfileDocument,
    Treatment,
)

logger = logging.getLogger("nightsync.reconcile.clients.nightscout")


def hash_api_secret(api_key: str) -> str:
    """Return the SHA-1 hex digest Nightscout expects in ``api-secret``."""
    return hashlib.sha1(api_key.encode("utf-8")).hexdigest()


class NightscoutClient(DestinationClient):
    """Thin async wrapper around the Nightscout v1 API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url:    Nightscout site root.
            api_key:     API secret; sent as ``token`` and hashed into ``api-secret``.
            http_client: Optional pre-configured httpx client (for testing).
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._http_client = http_client

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def list_profiles(self) -> list[ProfileDocument]:
        data = await self._request("GET", "api/v1/profile")
        return [ProfileDocument.from_dict(p) for p in data or [] if isinstance(p, dict)]

    async def upsert_profile(self, profile: ProfileDocument) -> ProfileDocument:
        data = await self._request("PUT", "api/v1/profile", json=profile.to_dict())
        if isinstance(data, dict) and "store" in data:
            return ProfileDocument.from_dict(data)
        return profile

    # ------------------------------------------------------------------
    # Treatments
    # ------------------------------------------------------------------

    async def append_treatments(self, treatments: list[Treatment]) -> list[dict]:
        data = await self._request(
            "POST", "api/v1/treatments", json=[t.to_dict() for t in treatments]
        )
        return list(data or [])

    async def get_treatments(
        self, find: str | None = None, count: int | None = None
    ) -> list[dict]:
        params: dict[str, Any] = {}
        if find is not None:
            params["find"] = find
        if count is not None:
            params["count"] = count
        data = await self._request("GET", "api/v1/treatments", params=params)
        return list(data or [])

    # ------------------------------------------------------------------
    # Entries / status
    # ------------------------------------------------------------------

    async def append_entries(self, entries: list[LogEntry]) -> None:
        await self._request(
            "POST", "api/v1/entries", json=[e.to_dict() for e in entries], parse=False
        )

    async def get_status(self) -> DestinationStatus:
        data = await self._request("GET", "api/v1/status.json")
        settings = (data or {}).get("settings") or {}
        return DestinationStatus(units=settings.get("units"))

    # ------------------------------------------------------------------
    # Private HTTP helper
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        parse: bool = True,
    ) -> Any:
        """Send one request with read auth, plus write auth for non-GET.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
        """
        url = f"{self._base_url}/{path}"
        query = {"token": self._api_key, **(params or {})}
        headers = {"Accept": "application/json"}
        if method != "GET":
            headers["api-secret"] = hash_api_secret(self._api_key)

        logger.debug("Nightscout: %s %s", method, url)
        if self._http_client:
            response = await self._http_client.request(
                method, url, params=query, headers=headers, json=json
            )
        else:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method, url, params=query, headers=headers, json=json
                )

        response.raise_for_status()
        if not parse:
            return None
        return response.json()
