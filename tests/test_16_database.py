#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for opening and closing the local event store database."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest
from sqlalchemy import inspect, text

from unfold.core import database
from unfold.core.database import close_event_store, get_session_factory, open_event_store


# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_open_creates_tables_and_close_releases(tmp_path):
    factory = await open_event_store(f"sqlite+aiosqlite:///{tmp_path / 'events.db'}")
    try:
        assert get_session_factory() is factory

        async with database._engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar_one()
        assert {"events", "sites"} <= set(tables)
        assert mode.lower() == "wal"
    finally:
        await close_event_store()

    with pytest.raises(RuntimeError):
        get_session_factory()


@pytest.mark.asyncio
async def test_close_without_open_is_harmless():
    await close_event_store()
    await close_event_store()


# -----------------------------------------------------------------------------
