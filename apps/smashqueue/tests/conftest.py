"""
Shared pytest configuration for smashqueue tests.

Each test gets its own SQLite database file (aiosqlite) so that engine
transactions, which open their own sessions, see each other's commits.
"""

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from smashqueue.database.db import Base, init_database
from smashqueue.database.store import Store
from smashqueue.services.engine import QueueEngine


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh test database with all tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'smashqueue_test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    await init_database(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def store(session_factory):
    return Store(session_factory, timeout_seconds=5)


@pytest_asyncio.fixture
async def queue_engine(store):
    return QueueEngine(store)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Plain session for inspecting committed state."""
    async with session_factory() as session:
        yield session
