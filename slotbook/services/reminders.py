"""Reminder run for upcoming appointments.

Invoked by the external scheduler (cron route or CLI). Each run picks the
appointments due for a reminder, queues one reminder notification per
appointment and stamps ``reminder_sent_at`` so the next run skips them.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.services.appointment_store import AppointmentStore
from slotbook.services.notifications import NotificationDispatcher, NotificationKind
from slotbook.services.scheduling import SchedulingService
from slotbook.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class ReminderService:
    """Send due appointment reminders."""

    def __init__(self, session: AsyncSession, dispatcher: NotificationDispatcher):
        self.session = session
        self.dispatcher = dispatcher
        self.store = AppointmentStore(session)

    async def send_due_reminders(self, now: datetime | None = None) -> dict[str, int]:
        """Queue reminders for every due appointment.

        Only appointments whose reminder was queued are stamped, so a
        dropped event is retried by the next run. Reminders are not
        lifecycle transitions: the version is untouched and no audit entry
        is written.

        Returns:
            Counts: ``total`` due, ``sent`` queued, ``failed`` not queued
        """
        now = ensure_utc(now) if now is not None else utc_now()

        due = await SchedulingService(self.session).find_due_for_reminder(now)

        sent = 0
        failed = 0
        try:
            for appointment in due:
                if self.dispatcher.dispatch(NotificationKind.REMINDER, appointment):
                    await self.store.mark_reminder_sent(str(appointment.id), now)
                    sent += 1
                else:
                    failed += 1
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Reminder run: total={len(due)} sent={sent} failed={failed}")

        return {"total": len(due), "sent": sent, "failed": failed}
