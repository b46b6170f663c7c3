"""Shared setup for scheduled tasks."""

import os

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from consultdesk.core.config import Settings


def resolve_database_url(database_url: str | None, settings: Settings) -> str:
    """Pick the database URL for a task run.

    An explicit argument wins, then DATABASE_URL, then settings.
    """
    db_url = database_url or os.getenv("DATABASE_URL") or settings.database_url

    # Convert sync URL to async if needed
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return db_url


def create_task_engine(db_url: str) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an engine and session factory for one task run."""
    engine = create_async_engine(db_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, session_factory
