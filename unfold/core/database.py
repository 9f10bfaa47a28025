#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Local event store database
==========================
One async engine per process, opened by ``open_event_store`` (app lifespan
and the warm-cache CLI) and released by ``close_event_store``.

The store is a SQLite file by default.  Events arrive from relays and are
written from concurrent request handlers, so SQLite connections are shared
across threads and run in WAL mode.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from .config import get_settings

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Declarative base for the ``events`` and ``sites`` tables."""
    pass


# -----------------------------------------------------------------------------

def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _sqlite_pragmas(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    if not _is_sqlite(url):
        return create_async_engine(url, echo=echo)

    engine = create_async_engine(url, echo=echo, connect_args={"check_same_thread": False})
    if ":memory:" not in url:
        sa_event.listen(engine.sync_engine, "connect", _sqlite_pragmas)
    return engine


# -----------------------------------------------------------------------------

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


# -----------------------------------------------------------------------------

async def open_event_store(url: str | None = None,
                           echo: bool | None = None) -> async_sessionmaker[AsyncSession]:
    """
    Create the engine and session factory, then the tables
    (CREATE TABLE IF NOT EXISTS).  Returns the session factory.
    """
    global _engine, _session_factory
    settings = get_settings()
    db_url = url or settings.database_url

    _engine = make_engine(db_url, settings.db_echo if echo is None else echo)
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Event store ready at %s", _engine.url.render_as_string(hide_password=True))
    return _session_factory


async def close_event_store() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("event store is not open")
    return _session_factory


# -----------------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a database session."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# -----------------------------------------------------------------------------
