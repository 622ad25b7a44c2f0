# ==== DATABASE CONNECTION AND SESSION MANAGEMENT ==== #

"""
Database connection and session management for Lunch Ledger.

This module provides async SQLAlchemy connectivity, the session factory and
the unit-of-work context manager used by the order services and the
background jobs. Every job tick and every request commits or rolls back as
a single transaction.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncContextManager, Callable

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
    AsyncEngine
)
from sqlalchemy.orm import declarative_base

from app.settings import settings
from app.observability.metrics import db_sessions_active


# ==== SQLALCHEMY CONFIGURATION ==== #

# SQLAlchemy base for model definitions
Base = declarative_base()

# Global engine and session factory instances
engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None

# Callable returning a transactional session context, as consumed by the jobs
SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


# ==== DATABASE INITIALIZATION ==== #

def _normalize_database_url(db_url: str) -> str:
    """
    Force the asyncpg driver for plain PostgreSQL URLs.

    Args:
        db_url (str): Configured database URL

    Returns:
        str: URL usable by the async engine
    """
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif db_url.startswith("postgresql+psycopg://"):
        db_url = db_url.replace("postgresql+psycopg://", "postgresql+asyncpg://", 1)

    if "sslmode=require" in db_url:
        db_url = db_url.replace("sslmode=require", "ssl=require")

    return db_url


def init_database(database_url: str | None = None) -> None:
    """
    Initialize database engine and session factory.

    Sets up the async SQLAlchemy engine with READ COMMITTED isolation for
    PostgreSQL; budget rows are protected by relational deltas and row locks
    taken by the services, not by the isolation level.

    Args:
        database_url (str | None): Override for the configured URL
    """
    global engine, SessionLocal

    if engine is not None:
        return

    db_url = _normalize_database_url(database_url or settings.DATABASE_URL)

    engine_kwargs = {"echo": settings.APP_ENV == "dev"}
    if db_url.startswith("postgresql+asyncpg://"):
        engine_kwargs["isolation_level"] = "READ COMMITTED"
        engine_kwargs["connect_args"] = {
            "server_settings": {
                "application_name": settings.SERVICE_NAME,
                "timezone": "UTC"
            }
        }

    engine = create_async_engine(db_url, **engine_kwargs)

    SessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False
    )


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session with automatic commit or rollback.

    Yields:
        AsyncSession: Database session

    Raises:
        Exception: Re-raised after rollback if the unit of work fails
    """
    if SessionLocal is None:
        init_database()

    async with SessionLocal() as session:
        db_sessions_active.inc()
        try:
            yield session
            await session.commit()
        except BaseException:
            # Covers cancellation on shutdown so a half-applied tick never commits
            await session.rollback()
            raise
        finally:
            db_sessions_active.dec()


async def create_schema() -> None:
    """Create all tables for the registered models (local runs and tests)."""
    if engine is None:
        init_database()

    # Import models so they register on Base.metadata
    from app.storage import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_database() -> None:
    """Close database connections on shutdown."""
    global engine, SessionLocal
    if engine is not None:
        await engine.dispose()
        engine = None
        SessionLocal = None
