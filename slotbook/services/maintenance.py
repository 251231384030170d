"""Periodic housekeeping for appointments."""

import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.schemas.actor import Actor
from slotbook.services.appointment_store import AppointmentStore
from slotbook.services.notifications import NotificationDispatcher
from slotbook.services.scheduling import SchedulingError, SchedulingService
from slotbook.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)

CLEANUP_ACTOR_ID = "system-cron"


class MaintenanceService:
    """Auto-complete finished appointments and soft delete stale cancellations."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
        actor: Actor | None = None,
    ):
        self.session = session
        self.store = AppointmentStore(session)
        self.scheduling = SchedulingService(session, dispatcher)
        self.actor = actor or Actor.system(CLEANUP_ACTOR_ID)

    async def complete_past_appointments(self, now: datetime) -> tuple[int, int]:
        """Complete every active appointment whose window has ended.

        Each one goes through the lifecycle engine in its own transaction,
        so it gets an audit entry and a notification, and one failure does
        not block the rest.

        Returns:
            (completed, failed)
        """
        past = await self.store.find_past_active(now)
        appointment_ids = [str(appointment.id) for appointment in past]
        # Release the read snapshot before the per-appointment transactions
        await self.session.commit()

        completed = 0
        failed = 0
        for appointment_id in appointment_ids:
            try:
                await self.scheduling.complete_appointment(appointment_id, self.actor)
                completed += 1
            except SchedulingError as e:
                failed += 1
                logger.warning(f"Could not auto-complete appointment {appointment_id}: {e}")

        return completed, failed

    async def soft_delete_old_cancellations(self, cutoff: datetime) -> int:
        """Soft delete cancelled appointments cancelled before ``cutoff``."""
        stale = await self.store.find_cancelled_before(cutoff)
        try:
            for appointment in stale:
                await self.store.soft_delete(appointment, self.actor.actor_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return len(stale)

    async def run_cleanup(
        self,
        now: datetime | None = None,
        soft_delete_days: int | None = None,
    ) -> dict[str, int]:
        """Run both cleanup steps and return their counts."""
        now = ensure_utc(now) if now is not None else utc_now()
        if soft_delete_days is None:
            soft_delete_days = settings.cleanup_soft_delete_days

        completed, failed = await self.complete_past_appointments(now)
        soft_deleted = await self.soft_delete_old_cancellations(
            now - timedelta(days=soft_delete_days)
        )

        logger.info(
            f"Cleanup run: completed={completed} failed={failed} "
            f"soft_deleted={soft_deleted}"
        )

        return {
            "completed": completed,
            "failed": failed,
            "soft_deleted": soft_deleted,
        }
