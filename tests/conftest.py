#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pytest fixtures for Unfold tests.
Uses an in-memory SQLite database and fake relays so no external services
are needed.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from unfold.core.config import Settings
from unfold.core.database import Base, get_db
from unfold.main import create_app
from unfold.services.cache import MemoryCacheStore, StaleWhileRevalidateCache
from unfold.services.container import build_services
from unfold.services.pipeline import ReferencePipeline
from unfold.services.rendering import JinjaTemplateRenderer, RendererDispatch
from unfold.services.resolver import BatchResolver
from unfold.services.store import TwoTierStore
from tests.fakes import FakeClock, FakeLocal, FakeNetwork


# -----------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


# -----------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(db_session_factory):
    """Direct DB session for test setup."""
    async with db_session_factory() as session:
        yield session


# -----------------------------------------------------------------------------
# Pipeline pieces
# -----------------------------------------------------------------------------

@pytest.fixture
def settings():
    return Settings(environment="testing", database_url=TEST_DB_URL, default_relays=[])


@pytest.fixture
def clock():
    return FakeClock(1_000.0)


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def local():
    return FakeLocal()


@pytest.fixture
def cache(clock):
    return StaleWhileRevalidateCache(MemoryCacheStore(clock=clock), clock=clock, placeholder_ttl=30)


@pytest.fixture
def store(local, network):
    return TwoTierStore(local, network)


@pytest.fixture
def pipeline(store):
    return ReferencePipeline(BatchResolver(store), RendererDispatch(JinjaTemplateRenderer()))


# -----------------------------------------------------------------------------
# HTTP
# -----------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def services(settings, db_session_factory, network, clock):
    svc = build_services(
        settings,
        db_session_factory,
        network=network,
        cache_store=MemoryCacheStore(clock=clock),
        clock=clock,
    )
    yield svc
    await svc.close()


@pytest_asyncio.fixture(scope="function")
async def client(db_session_factory, services):
    """HTTP test client wired to an isolated in-memory DB and fake relays."""
    async def override_get_db():
        async with db_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.state.services = services
    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# -----------------------------------------------------------------------------
