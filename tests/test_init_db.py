"""Tests for development schema creation."""

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

from consultdesk.db import init_db as init_db_module
from consultdesk.db.base import Base


@pytest.mark.asyncio
async def test_init_db_creates_all_tables(
    async_engine: AsyncEngine,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    monkeypatch.setattr(init_db_module, "engine", async_engine)

    await init_db_module.init_db()

    async with async_engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        indexes = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).get_indexes("consultations")
        )

    assert {"providers", "patients", "consultations", "domain_events", "notifications"} <= set(
        tables
    )
    assert "uq_consultations_active_slot" in {index["name"] for index in indexes}
