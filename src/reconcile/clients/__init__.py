"""API clients for the reconciler.

Available clients:
    TidepoolClient / TidepoolClientFactory — source: pump settings, events, CGM
    NightscoutClient                       — destination: profiles, treatments, entries
"""

from src.reconcile.clients.nightscout import NightscoutClient
from src.reconcile.clients.tidepool import (
    TidepoolAuthError,
    TidepoolClient,
    TidepoolClientFactory,
    TidepoolSession,
)

__all__ = [
    "NightscoutClient",
    "TidepoolAuthError",
    "TidepoolClient",
    "TidepoolClientFactory",
    "TidepoolSession",
]
