"""Database initialization utilities."""

import logging

from consultdesk.db.base import Base
from consultdesk.db.session import engine

# Register all models on the metadata
import consultdesk.models  # noqa: F401

logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def init_db() -> None:
    """Initialize the database schema for local development.

    Production schemas are managed by Alembic migrations.
    """
    await create_tables()
    logger.info("Database initialization complete")
