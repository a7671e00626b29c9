"""Pydantic models for the sync endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import model_validator

from src.models.base import NightsyncBase


class SyncRequest(NightsyncBase):
    since: datetime | None = None
    till: datetime | None = None

    @model_validator(mode="after")
    def _check_order(self) -> "SyncRequest":
        if self.since and self.till and self.since > self.till:
            raise ValueError("'since' must not be after 'till'")
        return self


class SyncResultRead(NightsyncBase):
    operation: str
    status: str
    records_pushed: int = 0
    profile_id: str | None = None
    error: str | None = None
    synced_at: datetime
