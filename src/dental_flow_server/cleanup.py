"""Stale-flow cleanup CLI - ``dental-flow-cleanup``.

Deletes persisted flow rows that have not been written for a number of
minutes.  Expired flows are already evicted when a user comes back to
them; this removes the ones nobody returns to.  Intended for cron.

Examples::

    # Purge rows idle past the flow TTL
    dental-flow-cleanup

    # Purge rows idle for a day or more
    dental-flow-cleanup --minutes 1440
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dental_flow.constants import STATE_TTL_MINUTES

logger = logging.getLogger(__name__)


async def run_cleanup(*, minutes: int = STATE_TTL_MINUTES) -> int:
    """Purge stale rows and return the number deleted."""
    # Lazy imports to avoid loading DB machinery at module import time
    from dental_flow_db.engine import dispose_engine, get_session_factory
    from dental_flow_db.repository import FlowStateRepository

    if minutes < 0:
        raise ValueError("minutes must be >= 0")

    repo = FlowStateRepository()
    factory = get_session_factory()

    try:
        async with factory() as db:
            affected = await repo.purge_older_than(db, minutes)
            await db.commit()

        logger.info("Cleanup complete: affected_rows=%d, minutes=%d", affected, minutes)
        return affected
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``dental-flow-cleanup``."""
    parser = argparse.ArgumentParser(
        prog="dental-flow-cleanup",
        description="Delete stale flow states from the database.",
    )
    parser.add_argument(
        "--minutes",
        type=int,
        default=STATE_TTL_MINUTES,
        help="Idle threshold in minutes (default: $STATE_TTL_MINUTES, or 20)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()
    if args.minutes < 0:
        parser.error("--minutes must be >= 0")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    affected = asyncio.run(run_cleanup(minutes=args.minutes))

    print(f"Affected rows: {affected}")
    sys.exit(0)
