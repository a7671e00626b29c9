"""Idempotency matching for Nightscout writes.

Dedup keys:
    - profile documents: ``mills`` (stringified epoch-ms of the pump settings
      timestamp).  A rebuilt document whose key matches a stored one takes
      over that document's ``_id`` so the PUT replaces it.
    - treatments / entries: none.  They are append-only; duplicates inside
      one batch are already collapsed by the merger and mapper.
"""

from __future__ import annotations

import logging
from typing import Iterable

from src.reconcile.base import ProfileDocument

logger = logging.getLogger("nightsync.reconcile.sync.dedup")


def find_matching_profile(
    profile: ProfileDocument, existing: Iterable[ProfileDocument]
) -> ProfileDocument | None:
    """Return the first stored profile with the same ``mills`` key and an id."""
    for candidate in existing:
        if candidate.id and candidate.mills == profile.mills:
            return candidate
    return None


def assign_existing_id(
    profile: ProfileDocument, existing: Iterable[ProfileDocument]
) -> ProfileDocument:
    """Copy the ``_id`` of a stored profile with the same key onto ``profile``.

    With no match the id is left unset so the write creates a new document.

    Returns:
        The same ``profile`` instance, for chaining.
    """
    match = find_matching_profile(profile, existing)
    if match is not None:
        profile.id = match.id
        logger.debug("Profile %s matches stored document %s", profile.mills, match.id)
    else:
        profile.id = None
    return profile
