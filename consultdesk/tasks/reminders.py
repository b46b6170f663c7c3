"""Scheduled task for next-day consultation reminders.

Usage:
    # Run directly
    python -m consultdesk.tasks.reminders

    # Or via cron (recommended once a day)
    0 8 * * * cd /path/to/project && python -m consultdesk.tasks.reminders

    # Environment variables:
    DATABASE_URL - PostgreSQL connection string
"""

import asyncio
import logging
import sys
from datetime import date

from consultdesk.core.config import get_settings
from consultdesk.core.logging import setup_logging
from consultdesk.services.notifications import build_emitter
from consultdesk.services.scanner import ConsultationScanner
from consultdesk.tasks.common import create_task_engine, resolve_database_url
from consultdesk.utils.time import normalize_date

logger = logging.getLogger(__name__)


async def run_reminder_task(
    database_url: str | None = None,
    today: date | None = None,
) -> dict:
    """Run the reminder scan once.

    Args:
        database_url: Database connection string. If not provided, uses DATABASE_URL env var.
        today: Reference day (defaults to the current UTC date)

    Returns:
        Scan results summary
    """
    settings = get_settings()
    db_url = resolve_database_url(database_url, settings)

    logger.info(f"Starting reminder scan (today={today or 'auto'})")

    engine, session_factory = create_task_engine(db_url)

    try:
        async with session_factory() as session:
            scanner = ConsultationScanner(
                session,
                build_emitter(session_factory, settings),
                reminder_lead_days=settings.reminder_lead_days,
            )
            result = await scanner.run_reminder_scan(today=today)

            logger.info(f"Reminder scan complete: {result.to_dict()}")
            return result.to_dict()

    finally:
        await engine.dispose()


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Send reminders for tomorrow's consultations")
    parser.add_argument(
        "--today",
        default=None,
        help="Reference date YYYY-MM-DD (defaults to today, UTC)",
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
            run_reminder_task(
                database_url=args.database_url,
                today=normalize_date(args.today) if args.today else None,
            )
        )
        print(f"Job completed successfully: {results}")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
