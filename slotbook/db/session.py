"""Async engine and session factory."""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from slotbook.core.config import settings


def engine_options(database_url: str) -> dict:
    """Engine keyword arguments for the given URL.

    Lifecycle transitions rely on serializable isolation on PostgreSQL so
    that two check-then-insert transactions on the same resource cannot
    both commit.
    """
    options: dict = {"echo": False, "pool_pre_ping": True}
    if database_url.startswith("postgresql"):
        options["isolation_level"] = settings.db_isolation_level
    return options


def enable_sqlite_write_lock(engine: AsyncEngine) -> None:
    """Take SQLite's write lock when each transaction begins.

    The sqlite3 driver defers BEGIN until the first write and SQLite
    ignores FOR UPDATE, so a conflict check would otherwise read without
    any lock. BEGIN IMMEDIATE serializes transactions on the database;
    a writer that cannot get the lock within the busy timeout fails with
    "database is locked".
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for ``database_url``."""
    new_engine = create_async_engine(database_url, **engine_options(database_url))
    if new_engine.dialect.name == "sqlite":
        enable_sqlite_write_lock(new_engine)
    return new_engine


engine = build_engine(settings.database_url)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for a single request."""
    async with AsyncSessionLocal() as session:
        yield session
