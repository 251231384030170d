"""Persistence operations for appointments.

The store never commits. Callers own the transaction so that reads,
conflict checks, writes and audit entries land in one atomic unit.
"""

from datetime import datetime, timedelta
from typing import Sequence
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus
from slotbook.schemas.appointment import AppointmentDetails, AppointmentFilter
from slotbook.utils.ids import is_valid_uuid
from slotbook.utils.time import utc_now


class AppointmentStore:
    """Appointment CRUD and range queries on a caller-owned session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        owner_id: str,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        details: AppointmentDetails,
    ) -> Appointment:
        """Insert a new scheduled appointment and flush it."""
        appointment = Appointment(
            id=str(uuid4()),
            owner_id=owner_id,
            resource_id=resource_id,
            start_time=start_time,
            end_time=end_time,
            title=details.title,
            description=details.description,
            location=details.location,
            meeting_url=details.meeting_url,
            contact_email=details.contact_email,
            status=AppointmentStatus.SCHEDULED.value,
        )

        self.session.add(appointment)
        await self.session.flush()

        return appointment

    async def get(
        self,
        appointment_id: str,
        for_update: bool = False,
        include_deleted: bool = False,
    ) -> Appointment | None:
        """Fetch one appointment by id.

        With ``for_update`` the row is locked for the rest of the
        transaction and any copy already in the identity map is refreshed,
        so version checks always see the committed value.

        Soft deleted rows are skipped unless ``include_deleted`` is set.
        """
        if not is_valid_uuid(appointment_id):
            return None

        query = select(Appointment).where(Appointment.id == appointment_id)
        if not include_deleted:
            query = query.where(Appointment.is_deleted == False)

        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_overlapping(
        self,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_id: str | None = None,
        lock: bool = True,
    ) -> Sequence[Appointment]:
        """Active appointments on ``resource_id`` intersecting ``[start, end)``."""
        query = select(Appointment).where(
            Appointment.resource_id == resource_id,
            Appointment.status.in_([s.value for s in ACTIVE_STATUSES]),
            Appointment.is_deleted == False,
            Appointment.start_time < end_time,
            Appointment.end_time > start_time,
        )

        if exclude_id is not None:
            query = query.where(Appointment.id != exclude_id)

        query = query.order_by(Appointment.start_time)

        if lock:
            query = query.with_for_update()

        result = await self.session.execute(query)
        return result.scalars().all()

    async def save(self, appointment: Appointment) -> Appointment:
        """Flush pending changes; the version column is bumped here."""
        await self.session.flush()
        return appointment

    async def soft_delete(self, appointment: Appointment, deleted_by: str) -> None:
        appointment.soft_delete(deleted_by)
        await self.session.flush()

    async def list_matching(self, filters: AppointmentFilter) -> Sequence[Appointment]:
        """List appointments matching ``filters`` ordered by start time."""
        query = select(Appointment).where(Appointment.is_deleted == False)

        if filters.owner_id:
            query = query.where(Appointment.owner_id == filters.owner_id)
        if filters.resource_id:
            query = query.where(Appointment.resource_id == filters.resource_id)
        if filters.status:
            query = query.where(Appointment.status == filters.status.value)
        if filters.upcoming_only:
            query = query.where(Appointment.start_time >= utc_now())

        query = (
            query.order_by(Appointment.start_time)
            .offset(filters.offset)
            .limit(filters.limit)
        )

        result = await self.session.execute(query)
        return result.scalars().all()

    async def find_due_for_reminder(
        self,
        now: datetime,
        lead: timedelta,
        window: timedelta,
    ) -> Sequence[Appointment]:
        """Active appointments starting in ``[now + lead - window, now + lead)``
        that have not had a reminder yet. Read-only."""
        window_end = now + lead
        window_start = window_end - window

        result = await self.session.execute(
            select(Appointment)
            .where(
                Appointment.status.in_([s.value for s in ACTIVE_STATUSES]),
                Appointment.is_deleted == False,
                Appointment.reminder_sent_at.is_(None),
                Appointment.start_time >= window_start,
                Appointment.start_time < window_end,
            )
            .order_by(Appointment.start_time)
        )
        return result.scalars().all()

    async def mark_reminder_sent(self, appointment_id: str, sent_at: datetime) -> None:
        """Stamp ``reminder_sent_at`` without bumping the version.

        A reminder is not a lifecycle change, so it must not invalidate a
        version a client is holding.
        """
        await self.session.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id)
            .values(reminder_sent_at=sent_at)
        )

    async def find_past_active(self, now: datetime) -> Sequence[Appointment]:
        """Active appointments whose window has already ended."""
        result = await self.session.execute(
            select(Appointment)
            .where(
                Appointment.status.in_([s.value for s in ACTIVE_STATUSES]),
                Appointment.is_deleted == False,
                Appointment.end_time < now,
            )
            .order_by(Appointment.end_time)
        )
        return result.scalars().all()

    async def find_cancelled_before(self, cutoff: datetime) -> Sequence[Appointment]:
        """Cancelled, not yet soft-deleted appointments cancelled before ``cutoff``."""
        result = await self.session.execute(
            select(Appointment).where(
                Appointment.status == AppointmentStatus.CANCELLED.value,
                Appointment.is_deleted == False,
                Appointment.cancelled_at < cutoff,
            )
        )
        return result.scalars().all()
