"""PostgreSQL store with async SQLAlchemy.

Handles:
- Database session management
- Transaction boundaries (commit on success, rollback on any exception)
- Connection pooling
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from stonebridge.services.errors import NotConfigured
from stonebridge.settings import get_settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


# Engine and session factory (initialized on startup)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db(database_url: str | None = None) -> None:
    """Initialize database connection pool.

    Args:
        database_url: Optional override (tests pass an aiosqlite URL).
    """
    global _engine, _session_factory

    settings = get_settings()
    url = database_url or settings.async_database_url
    engine_kwargs: dict[str, object] = {"echo": settings.debug, "pool_pre_ping": True}
    if url.startswith("postgresql"):
        engine_kwargs.update(
            connect_args=settings.asyncpg_connect_args,
            pool_size=5,
            max_overflow=10,
        )

    _engine = create_async_engine(url, **engine_kwargs)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def close_db() -> None:
    """Close database connection pool."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def is_db_configured() -> bool:
    """True once init_db() has run."""
    return _session_factory is not None


async def ping_db() -> None:
    """Run a trivial query to validate connectivity."""
    async with get_session() as session:
        await session.execute(text("SELECT 1"))


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session context manager.

    The block runs in one transaction: it commits when the block exits
    normally and rolls back when it raises.

    Usage:
        async with get_session() as session:
            result = await session.execute(query)
    """
    if _session_factory is None:
        raise NotConfigured("Database is not configured", code="DATABASE_NOT_CONFIGURED")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create all tables (for development/testing only)."""
    if _engine is None:
        raise NotConfigured("Database is not configured", code="DATABASE_NOT_CONFIGURED")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables() -> None:
    """Drop all tables (for testing only)."""
    if _engine is None:
        raise NotConfigured("Database is not configured", code="DATABASE_NOT_CONFIGURED")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
