"""
Database Session Management - Async SQLAlchemy session factory.

One engine per process; sessions are handed to requests via ``get_write_db``
and to scripts via ``get_write_session``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from backoffice.config import settings
from backoffice.observability.tracing import instrument_sqlalchemy

# Global engine instance
_write_engine: AsyncEngine | None = None

# Session factory
_write_session_factory: async_sessionmaker[AsyncSession] | None = None


def _create_engine(url: str) -> AsyncEngine:
    engine = create_async_engine(
        url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=settings.database_pool_timeout,
        pool_recycle=settings.database_pool_recycle,
        echo=settings.log_level == "DEBUG",
    )
    instrument_sqlalchemy(engine)
    return engine


def get_write_engine() -> AsyncEngine:
    """Get or create the database engine."""
    global _write_engine
    if _write_engine is None:
        _write_engine = _create_engine(settings.database_url)
    return _write_engine


def get_write_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory."""
    global _write_session_factory
    if _write_session_factory is None:
        _write_session_factory = async_sessionmaker(
            get_write_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _write_session_factory


@asynccontextmanager
async def get_write_session() -> AsyncIterator[AsyncSession]:
    """
    Get an async database session outside a request.

    Usage:
        async with get_write_session() as session:
            store = SqlDocumentStore(session)
            await store.insert(profile)
    """
    factory = get_write_session_factory()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_write_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for a database session.

    Usage:
        @router.post("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_write_db)):
            ...
    """
    factory = get_write_session_factory()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def close_engines() -> None:
    """Close the database engine (for graceful shutdown)."""
    global _write_engine, _write_session_factory

    if _write_engine:
        await _write_engine.dispose()
        _write_engine = None
        _write_session_factory = None
