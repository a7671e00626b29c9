"""Reconciliation run infrastructure.

Modules:
    orchestrator — SyncOrchestrator: drives profile, treatment and entry sync
    dedup        — idempotency matching (profile ``mills`` → stored ``_id``)
"""
