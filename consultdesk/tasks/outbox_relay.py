"""Scheduled task that re-drives undelivered consultation events.

Lifecycle transitions try to deliver their event right after commit. Events
whose delivery failed stay pending in the outbox; this job retries them.

Usage:
    # Run directly
    python -m consultdesk.tasks.outbox_relay

    # Or via cron (recommended every 5 minutes)
    */5 * * * * cd /path/to/project && python -m consultdesk.tasks.outbox_relay

    # Environment variables:
    DATABASE_URL - PostgreSQL connection string
"""

import asyncio
import logging
import sys

from consultdesk.core.config import get_settings
from consultdesk.core.logging import setup_logging
from consultdesk.services.notifications import OutboxRelay, build_emitter
from consultdesk.tasks.common import create_task_engine, resolve_database_url

logger = logging.getLogger(__name__)


async def run_outbox_relay_task(
    database_url: str | None = None,
    batch_size: int = 100,
) -> dict:
    """Deliver one batch of pending outbox events.

    Args:
        database_url: Database connection string. If not provided, uses DATABASE_URL env var.
        batch_size: Maximum number of events to process

    Returns:
        Delivery results summary
    """
    settings = get_settings()
    db_url = resolve_database_url(database_url, settings)

    engine, session_factory = create_task_engine(db_url)

    try:
        async with session_factory() as session:
            relay = OutboxRelay(
                session,
                build_emitter(session_factory, settings),
                max_attempts=settings.outbox_max_attempts,
            )
            return await relay.deliver_pending(limit=batch_size)

    finally:
        await engine.dispose()


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Deliver pending consultation events")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="Maximum number of events to deliver in this run",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (overrides DATABASE_URL env var)",
    )
    args = parser.parse_args()

    setup_logging()

    try:
        results = asyncio.run(
            run_outbox_relay_task(
                database_url=args.database_url,
                batch_size=args.batch_size,
            )
        )
        print(f"Job completed successfully: {results}")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
