"""Database initialization utilities."""

import logging

from slotbook.db.base import Base
from slotbook.db.session import engine

# Register all models on Base.metadata
import slotbook.models  # noqa: F401

logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def drop_tables() -> None:
    """Drop all database tables (use with caution)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Database tables dropped")


async def init_db() -> None:
    """Initialize the database schema for local development.

    Production schemas are managed by Alembic; this only runs when
    ``init_db_on_startup`` is set in dev.
    """
    await create_tables()
    logger.info("Database initialization complete")
