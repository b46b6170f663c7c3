"""Scheduled task for provider license expiry notices.

Usage:
    # Run directly
    python -m consultdesk.tasks.license_expiry

    # Or via cron (recommended once a day)
    0 6 * * * cd /path/to/project && python -m consultdesk.tasks.license_expiry

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


async def run_license_expiry_task(
    database_url: str | None = None,
    today: date | None = None,
) -> dict:
    """Run the license expiry scan once.

    Args:
        database_url: Database connection string. If not provided, uses DATABASE_URL env var.
        today: Reference day (defaults to the current UTC date)

    Returns:
        Scan results summary
    """
    settings = get_settings()
    db_url = resolve_database_url(database_url, settings)

    logger.info(f"Starting license expiry scan (today={today or 'auto'})")

    engine, session_factory = create_task_engine(db_url)

    try:
        async with session_factory() as session:
            scanner = ConsultationScanner(session, build_emitter(session_factory, settings))
            result = await scanner.run_license_expiry_scan(today=today)

            logger.info(f"License expiry scan complete: {result.to_dict()}")
            return result.to_dict()

    finally:
        await engine.dispose()


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Notify providers with expired licenses")
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
            run_license_expiry_task(
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
