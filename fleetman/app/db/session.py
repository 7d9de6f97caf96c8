"""
Database session configuration.

This module builds the SQLAlchemy async engine and session factory from
Settings and provides the per-request session dependency. PostgreSQL
(asyncpg) is the production store; SQLite (aiosqlite) is supported for
tests and local development.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, StaticPool

from fleetman.app.core.config import Settings
from fleetman.app.core.exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)

# Create declarative base for models
Base = declarative_base()


def _sqlite_on_connect(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_manual_begin(dbapi_conn, connection_record):
    # Stop the driver from emitting its own deferred BEGIN
    dbapi_conn.isolation_level = None


def _sqlite_begin_immediate(conn):
    # Take the write lock up front so concurrent writers queue on the busy timeout
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Create the async engine described by ``settings.database_url``.

    Every store operation carries a timeout: pool checkout and per-statement
    on PostgreSQL, the busy timeout on SQLite.
    """
    url = make_url(settings.database_url)

    if url.get_backend_name() == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        engine = create_async_engine(
            url,
            echo=settings.db_echo,
            connect_args={"check_same_thread": False, "timeout": settings.db_pool_timeout},
            poolclass=StaticPool if in_memory else NullPool,
        )
        event.listen(engine.sync_engine, "connect", _sqlite_on_connect)
        if not in_memory:
            # A shared in-memory connection cannot hold two transactions, so
            # only file databases take the write lock on BEGIN.
            event.listen(engine.sync_engine, "connect", _sqlite_manual_begin)
            event.listen(engine.sync_engine, "begin", _sqlite_begin_immediate)
        return engine

    return create_async_engine(
        url,
        echo=settings.db_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
        connect_args={"command_timeout": settings.db_command_timeout},
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Create the async session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency for database sessions.

    Yields an async database session from the factory attached to the
    application and ensures it's properly closed.
    """
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a unit of work as one transaction.

    Commits when the block exits normally and rolls back on any exception.
    Store connectivity failures and timeouts are re-raised as
    ServiceUnavailableError; every other exception propagates unchanged.
    """
    try:
        yield db
        await db.commit()
    except (OperationalError, PoolTimeoutError, asyncio.TimeoutError) as exc:
        await db.rollback()
        logger.error(f"Transaction rolled back, store unavailable: {exc}")
        raise ServiceUnavailableError() from exc
    except Exception:
        await db.rollback()
        raise
