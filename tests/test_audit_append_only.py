"""Tests for append-only audit event functionality."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.models.appointment import AppointmentStatus
from slotbook.models.audit_event import AuditAction, AuditImmutableError
from slotbook.schemas.actor import Actor
from slotbook.schemas.audit_event import AuditEventFilter
from slotbook.services.audit import AuditService, write_audit_event
from slotbook.services.scheduling import SchedulingService
from tests.conftest import RESOURCE_ID, at, make_details


async def _appointment_id(session: AsyncSession, actor: Actor) -> str:
    appointment = await SchedulingService(session).create_appointment(
        actor=actor,
        resource_id=RESOURCE_ID,
        start_time=at(10),
        end_time=at(11),
        details=make_details(),
    )
    return appointment.id


@pytest.mark.asyncio
async def test_write_audit_event(async_session: AsyncSession, user_actor: Actor) -> None:
    """Test writing an audit event."""
    appointment_id = await _appointment_id(async_session, user_actor)

    event = await write_audit_event(
        session=async_session,
        appointment_id=appointment_id,
        action=AuditAction.CONFIRM,
        actor=user_actor,
        previous_status=AppointmentStatus.SCHEDULED,
        new_status=AppointmentStatus.CONFIRMED,
        metadata={"key": "value"},
        request_id="req-1",
    )

    assert event.id is not None
    assert event.action == "confirm"
    assert event.actor_id == "user-1"
    assert event.actor_role == "user"
    assert event.previous_status == "scheduled"
    assert event.new_status == "confirmed"
    assert event.event_metadata == {"key": "value"}
    assert event.created_at is not None


@pytest.mark.asyncio
async def test_audit_service_filters(
    async_session: AsyncSession, user_actor: Actor, admin_actor: Actor
) -> None:
    """Test audit service filtering capabilities."""
    service = SchedulingService(async_session)
    appointment_id = await _appointment_id(async_session, user_actor)
    await service.confirm_appointment(appointment_id, admin_actor)
    await service.cancel_appointment(appointment_id, user_actor, expected_version=2)

    audit = AuditService(async_session)

    by_action = await audit.get_events(AuditEventFilter(action="confirm"))
    assert [e.actor_id for e in by_action] == ["admin-1"]

    by_actor = await audit.get_events(AuditEventFilter(actor_id="user-1"))
    assert {e.action for e in by_actor} == {"create", "cancel"}

    by_appointment = await audit.get_events(
        AuditEventFilter(appointment_id=appointment_id)
    )
    assert len(by_appointment) == 3

    assert await audit.get_events(AuditEventFilter(appointment_id="not-a-uuid")) == []


@pytest.mark.asyncio
async def test_get_event_by_id(async_session: AsyncSession, user_actor: Actor) -> None:
    appointment_id = await _appointment_id(async_session, user_actor)
    audit = AuditService(async_session)
    [created] = await audit.get_appointment_history(appointment_id)

    found = await audit.get_event_by_id(created.id)

    assert found is created
    assert await audit.get_event_by_id("not-a-uuid") is None


@pytest.mark.asyncio
async def test_audit_event_cannot_be_updated(
    async_session: AsyncSession, user_actor: Actor
) -> None:
    """Persisted entries reject modification."""
    appointment_id = await _appointment_id(async_session, user_actor)
    [event] = await AuditService(async_session).get_appointment_history(appointment_id)

    event.new_status = "cancelled"

    with pytest.raises(AuditImmutableError):
        await async_session.flush()

    await async_session.rollback()


@pytest.mark.asyncio
async def test_audit_event_cannot_be_deleted(
    async_session: AsyncSession, user_actor: Actor
) -> None:
    """Persisted entries reject deletion."""
    appointment_id = await _appointment_id(async_session, user_actor)
    [event] = await AuditService(async_session).get_appointment_history(appointment_id)

    await async_session.delete(event)

    with pytest.raises(AuditImmutableError):
        await async_session.flush()

    await async_session.rollback()
