"""Append-only audit recording for appointment transitions."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.logging import audit_logger
from slotbook.models.appointment import AppointmentStatus
from slotbook.models.audit_event import AuditAction, AuditEvent
from slotbook.schemas.actor import Actor
from slotbook.schemas.audit_event import AuditEventFilter
from slotbook.utils.ids import is_valid_uuid


async def write_audit_event(
    session: AsyncSession,
    appointment_id: str,
    action: AuditAction,
    actor: Actor,
    previous_status: AppointmentStatus | None,
    new_status: AppointmentStatus,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """Append an audit entry inside the caller's transaction.

    The entry is flushed but not committed: it becomes durable together
    with the state change it describes, and a failure here must roll that
    state change back.

    Args:
        session: Database session owning the transition's transaction
        appointment_id: Appointment the transition applies to
        action: Transition performed
        actor: Who performed it
        previous_status: Status before the transition (None for create)
        new_status: Status after the transition
        metadata: Additional context as JSON (windows, reason, override)
        request_id: Request correlation ID

    Returns:
        Flushed AuditEvent instance
    """
    event = AuditEvent(
        appointment_id=appointment_id,
        action=action.value,
        actor_id=actor.actor_id,
        actor_role=actor.role.value,
        previous_status=previous_status.value if previous_status else None,
        new_status=new_status.value,
        event_metadata=metadata,
        request_id=request_id,
    )

    session.add(event)
    await session.flush()

    audit_logger.log(
        action=action.value,
        actor_role=actor.role.value,
        actor_id=actor.actor_id,
        appointment_id=appointment_id,
        previous_status=event.previous_status,
        new_status=event.new_status,
        metadata=metadata,
    )

    return event


class AuditService:
    """Read-only queries over audit entries.

    Entries are created only through write_audit_event().
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_events(self, filters: AuditEventFilter) -> list[AuditEvent]:
        """Query audit entries, newest first."""
        if filters.appointment_id and not is_valid_uuid(filters.appointment_id):
            return []

        query = select(AuditEvent).order_by(AuditEvent.created_at.desc())

        if filters.appointment_id:
            query = query.where(AuditEvent.appointment_id == filters.appointment_id)
        if filters.actor_id:
            query = query.where(AuditEvent.actor_id == filters.actor_id)
        if filters.action:
            query = query.where(AuditEvent.action == filters.action)

        query = query.offset(filters.offset).limit(filters.limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_event_by_id(self, event_id: str) -> AuditEvent | None:
        if not is_valid_uuid(event_id):
            return None
        result = await self.session.execute(
            select(AuditEvent).where(AuditEvent.id == event_id)
        )
        return result.scalar_one_or_none()

    async def get_appointment_history(
        self,
        appointment_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Entries for one appointment in the order they were written."""
        result = await self.session.execute(
            select(AuditEvent)
            .where(AuditEvent.appointment_id == appointment_id)
            .order_by(AuditEvent.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())
