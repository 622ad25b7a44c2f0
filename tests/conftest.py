# ==== SHARED TEST FIXTURES AND CONFIGURATION ==== #

"""
Shared test fixtures and configuration.

Every test gets its own file-backed SQLite database with the full schema,
a transactional session factory shaped like ``get_session`` and a pinned
clock, so cutoff and settlement behaviour is deterministic.
"""

import datetime as dt
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import pytest
import pytest_asyncio


# ==== FORCE ENVIRONMENT SETUP BEFORE ANY IMPORTS ==== #

# Set environment variables BEFORE importing any app modules
os.environ.update({
    "APP_ENV": "test",
    "DATABASE_URL": "sqlite+aiosqlite:///./lunch_ledger_test.db",
    "LOG_LEVEL": "WARNING",
    "DEFAULT_TIMEZONE": "UTC",
    "MAX_FREEZES_PER_WEEK": "2",
})

# Now import app modules after environment is set
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.services import pricing
from app.services.cutoff import CutoffEvaluator, FixedClock, TimezoneResolver
from app.storage import models  # noqa: F401
from app.storage.db import Base
from tests.factories.data_factories import DataFactory


# ==== DATABASE FIXTURES ==== #


@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    Create an isolated database with every table.

    Returns:
        AsyncEngine: Engine bound to a temporary SQLite file
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'lunch_ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """
    Unit-of-work factory with the same contract as ``get_session``.

    Commits when the block exits cleanly and rolls back on any exception.
    """
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    @asynccontextmanager
    async def factory() -> AsyncGenerator[AsyncSession, None]:
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    return factory


@pytest.fixture
def factory(session_factory):
    """Data factory committing every created row in its own transaction."""
    return DataFactory(session_factory)


# ==== TIME FIXTURES ==== #


@pytest.fixture
def base_time():
    """Monday 2026-10-19 12:00 UTC."""
    return dt.datetime(2026, 10, 19, 12, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def clock(base_time):
    return FixedClock(base_time)


@pytest.fixture
def evaluator(clock):
    """Cutoff evaluator on the pinned clock; blank timezones resolve to UTC."""
    return CutoffEvaluator(clock=clock, tz_resolver=TimezoneResolver(fallback="UTC"))


@pytest.fixture
def today(base_time):
    return base_time.date()


# ==== POLICY FIXTURES ==== #


@pytest.fixture(autouse=True)
def reset_pricing_cache():
    """Reload the combo policy for every test."""
    pricing.clear_cache()
    yield
    pricing.clear_cache()
