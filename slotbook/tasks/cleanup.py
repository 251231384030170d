"""Scheduled task for appointment cleanup.

Completes appointments whose window has ended and soft deletes cancelled
appointments older than the retention period.

Usage:
    # Run directly
    python -m slotbook.tasks.cleanup --soft-delete-days 30

    # Or via cron (recommended to run daily)
    0 3 * * * cd /path/to/project && python -m slotbook.tasks.cleanup

    # Environment variables:
    DATABASE_URL - database connection string
    CLEANUP_SOFT_DELETE_DAYS - retention for cancelled appointments
"""

import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotbook.core.config import settings
from slotbook.db.session import build_engine
from slotbook.services.maintenance import MaintenanceService
from slotbook.tasks.reminders import build_task_dispatcher
from slotbook.utils.time import utc_now

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def run_cleanup_task(
    database_url: str | None = None,
    soft_delete_days: int | None = None,
) -> dict:
    """Run one cleanup pass.

    Args:
        database_url: Database connection string. Defaults to settings.
        soft_delete_days: Retention for cancelled appointments. Defaults to settings.

    Returns:
        Cleanup counts plus notification delivery results
    """
    db_url = database_url or settings.database_url

    logger.info(f"Starting cleanup task at {utc_now().isoformat()}")

    engine = build_engine(db_url)
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    dispatcher = build_task_dispatcher(session_factory)

    try:
        async with session_factory() as session:
            results = await MaintenanceService(session, dispatcher).run_cleanup(
                soft_delete_days=soft_delete_days
            )

        delivered, undelivered = await dispatcher.drain()
        results["delivered"] = delivered
        results["undelivered"] = undelivered

        logger.info(f"Cleanup task complete: {results}")
        return results

    finally:
        await engine.dispose()


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Complete past appointments and purge old cancellations")
    parser.add_argument(
        "--soft-delete-days",
        type=int,
        default=None,
        help="Soft delete cancellations older than this many days",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (overrides DATABASE_URL env var)",
    )
    args = parser.parse_args()

    try:
        results = asyncio.run(
            run_cleanup_task(
                database_url=args.database_url,
                soft_delete_days=args.soft_delete_days,
            )
        )
        print(f"Job completed successfully: {results}")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
