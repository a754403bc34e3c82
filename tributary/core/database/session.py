"""
Database Session Management
===========================

Async database session utilities with lazy initialization.
The engine and session maker are created on first access, not at import time,
so that workers and unit tests can import modules without a database.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker[AsyncSession] | None = None

_db_config: dict = {}


def configure_database(database_url: str, pool_size: int = 5, max_overflow: int = 10) -> None:
    """Configure database connection parameters. Called by the API and worker on startup."""
    global _db_config
    _db_config = {
        "database_url": database_url,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
    }


def get_engine() -> AsyncEngine:
    """
    Get the async database engine, creating it on first access.

    Returns:
        AsyncEngine: The SQLAlchemy async engine.
    """
    global _engine
    if _engine is None:
        if not _db_config:
            raise RuntimeError("Database not configured. Call configure_database() first.")
        _engine = create_async_engine(
            _db_config["database_url"],
            echo=False,
            pool_pre_ping=True,
            pool_size=_db_config.get("pool_size", 5),
            max_overflow=_db_config.get("max_overflow", 10),
        )
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get the async session maker, creating it on first access."""
    global _async_session_maker
    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_maker


@asynccontextmanager
async def session_scope(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for a single activity.

    Repositories commit after every row mutation, so a failure only rolls
    back the row being written when it happened.
    """
    async with (session_maker or get_session_maker())() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def task_session_maker() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session maker on a private engine for one worker task.

    Every task runs on its own event loop and asyncpg connections are bound
    to the loop that opened them, so the engine lives and dies with the task.
    """
    if not _db_config:
        raise RuntimeError("Database not configured. Call configure_database() first.")
    engine = create_async_engine(_db_config["database_url"], poolclass=NullPool)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


async def close_database() -> None:
    """
    Dispose the engine and reset globals.
    Should be called on application shutdown.
    """
    global _engine, _async_session_maker
    try:
        if _engine:
            await _engine.dispose()
    finally:
        _engine = None
        _async_session_maker = None

