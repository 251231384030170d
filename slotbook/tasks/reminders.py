"""Scheduled task for appointment reminders.

Queues a reminder for every active appointment starting inside the reminder
window and delivers the queued notifications before exiting.

Usage:
    # Run directly
    python -m slotbook.tasks.reminders

    # Or via cron (the window is an hour wide, so run hourly)
    0 * * * * cd /path/to/project && python -m slotbook.tasks.reminders

    # Environment variables:
    DATABASE_URL - database connection string
    REMINDER_LEAD_HOURS / REMINDER_WINDOW_MINUTES - reminder window
"""

import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotbook.core.config import settings
from slotbook.db.session import build_engine
from slotbook.services.notifications import (
    EmailProvider,
    NotificationDispatcher,
    NotificationSender,
)
from slotbook.services.reminders import ReminderService
from slotbook.utils.time import utc_now

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_task_dispatcher(session_factory: async_sessionmaker) -> NotificationDispatcher:
    """Dispatcher without a worker; tasks deliver with ``drain()``."""
    sender = NotificationSender(
        session_factory=session_factory,
        email_provider=EmailProvider(
            from_email=settings.mail_from_email,
            from_name=settings.mail_from_name,
        ),
    )
    return NotificationDispatcher(sender, maxsize=settings.notification_queue_size)


async def run_reminder_task(database_url: str | None = None) -> dict:
    """Run one reminder pass.

    Args:
        database_url: Database connection string. Defaults to settings.

    Returns:
        Counts from the reminder run plus delivery results
    """
    db_url = database_url or settings.database_url

    logger.info(f"Starting reminder task at {utc_now().isoformat()}")

    engine = build_engine(db_url)
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    dispatcher = build_task_dispatcher(session_factory)

    try:
        async with session_factory() as session:
            results = await ReminderService(session, dispatcher).send_due_reminders()

        delivered, undelivered = await dispatcher.drain()
        results["delivered"] = delivered
        results["undelivered"] = undelivered

        logger.info(f"Reminder task complete: {results}")
        return results

    finally:
        await engine.dispose()


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Send due appointment reminders")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (overrides DATABASE_URL env var)",
    )
    args = parser.parse_args()

    try:
        results = asyncio.run(run_reminder_task(database_url=args.database_url))
        print(f"Job completed successfully: {results}")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
