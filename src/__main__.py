"""One-shot command line run: sync profiles, treatments and entries once.

    python -m src [--since ISO] [--till ISO] [--only profiles --only entries]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from src.config import configure_logging, get_settings
from src.dependencies import build_orchestrator
from src.reconcile.config_loader import reload_sync_config
from src.reconcile.sync.orchestrator import SyncOrchestrator, SyncWindow

logger = logging.getLogger("nightsync.cli")

OPERATIONS = ("profiles", "treatments", "entries")


def _iso_datetime(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 datetime: {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="python -m src",
        description="Sync Tidepool pump settings, treatments and CGM data into Nightscout.",
    )
    parser.add_argument("--since", type=_iso_datetime, help="Window start (default: today, UTC).")
    parser.add_argument("--till", type=_iso_datetime, help="Window end (default: open).")
    parser.add_argument(
        "--only",
        action="append",
        choices=OPERATIONS,
        help="Run only this operation; repeatable (default: all, in order).",
    )
    parser.add_argument("--config", type=Path, help="Alternative sync_config.yaml.")
    return parser.parse_args(argv)


async def run(
    orchestrator: SyncOrchestrator,
    window: SyncWindow | None,
    operations: list[str],
) -> int:
    """Run the selected operations in order, stopping at the first failure."""
    for name in operations:
        operation = getattr(orchestrator, f"sync_{name}")
        try:
            result = await operation(window)
        except Exception:
            logger.exception("Sync operation %s failed", name)
            return 1
        logger.info(
            "%s: %s (%d pushed)", result.operation, result.status, result.records_pushed
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    ns = parse_args(argv)
    settings = get_settings()

    configure_logging(settings.log_level)

    if ns.config is not None:
        reload_sync_config(ns.config)

    since = ns.since or settings.sync_since
    till = ns.till or settings.sync_till
    window = SyncWindow(since=since, till=till) if since or till else None

    orchestrator = build_orchestrator(settings)
    return asyncio.run(run(orchestrator, window, ns.only or list(OPERATIONS)))


if __name__ == "__main__":
    raise SystemExit(main())
