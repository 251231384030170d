"""Appointment lifecycle endpoints.

Handlers only translate HTTP to service calls. Scheduling errors propagate
to the exception handlers registered in ``slotbook.main``.
"""

from fastapi import APIRouter, Query, status

from slotbook.api.deps import CurrentActor, DbSession, Dispatcher, RequestId
from slotbook.models.appointment import AppointmentStatus
from slotbook.schemas.appointment import (
    AppointmentCreate,
    AppointmentFilter,
    AppointmentRead,
    CancelRequest,
    CompleteRequest,
    ConfirmRequest,
    RescheduleRequest,
)
from slotbook.schemas.audit_event import AuditEventRead
from slotbook.services.audit import AuditService
from slotbook.services.scheduling import SchedulingService

router = APIRouter()


@router.post(
    "",
    response_model=AppointmentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
    description="Book a resource for a time window; 409 if the slot is already booked",
)
async def create_appointment(
    request: AppointmentCreate,
    session: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    request_id: RequestId,
) -> AppointmentRead:
    service = SchedulingService(session, dispatcher)
    appointment = await service.create_appointment(
        actor=actor,
        resource_id=request.resource_id,
        start_time=request.start_time,
        end_time=request.end_time,
        details=request.details(),
        owner_id=request.owner_id,
        request_id=request_id,
    )
    return AppointmentRead.model_validate(appointment)


@router.get(
    "",
    response_model=list[AppointmentRead],
    summary="List appointments",
    description="Own appointments; actors with read-all permission may filter by owner",
)
async def list_appointments(
    session: DbSession,
    actor: CurrentActor,
    owner_id: str | None = None,
    resource_id: str | None = None,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    upcoming_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[AppointmentRead]:
    filters = AppointmentFilter(
        owner_id=owner_id,
        resource_id=resource_id,
        status=status_filter,
        upcoming_only=upcoming_only,
        limit=limit,
        offset=offset,
    )
    service = SchedulingService(session)
    appointments = await service.list_appointments(actor, filters)
    return [AppointmentRead.model_validate(a) for a in appointments]


@router.get(
    "/{appointment_id}",
    response_model=AppointmentRead,
    summary="Get appointment",
)
async def get_appointment(
    appointment_id: str,
    session: DbSession,
    actor: CurrentActor,
) -> AppointmentRead:
    service = SchedulingService(session)
    appointment = await service.get_appointment(appointment_id, actor)
    return AppointmentRead.model_validate(appointment)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentRead,
    summary="Reschedule appointment",
    description="Move to a new window; requires the version the client last read",
)
async def reschedule_appointment(
    appointment_id: str,
    request: RescheduleRequest,
    session: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    request_id: RequestId,
) -> AppointmentRead:
    service = SchedulingService(session, dispatcher)
    appointment = await service.reschedule_appointment(
        appointment_id,
        new_start=request.start_time,
        new_end=request.end_time,
        actor=actor,
        expected_version=request.expected_version,
        request_id=request_id,
    )
    return AppointmentRead.model_validate(appointment)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentRead,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: str,
    request: CancelRequest,
    session: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    request_id: RequestId,
) -> AppointmentRead:
    service = SchedulingService(session, dispatcher)
    appointment = await service.cancel_appointment(
        appointment_id,
        actor=actor,
        expected_version=request.expected_version,
        reason=request.reason,
        request_id=request_id,
    )
    return AppointmentRead.model_validate(appointment)


@router.post(
    "/{appointment_id}/confirm",
    response_model=AppointmentRead,
    summary="Confirm appointment",
)
async def confirm_appointment(
    appointment_id: str,
    session: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    request_id: RequestId,
    request: ConfirmRequest | None = None,
) -> AppointmentRead:
    service = SchedulingService(session, dispatcher)
    appointment = await service.confirm_appointment(
        appointment_id,
        actor=actor,
        expected_version=request.expected_version if request else None,
        request_id=request_id,
    )
    return AppointmentRead.model_validate(appointment)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentRead,
    summary="Complete appointment",
    description="Allowed once the appointment has ended, or earlier with override",
)
async def complete_appointment(
    appointment_id: str,
    session: DbSession,
    dispatcher: Dispatcher,
    actor: CurrentActor,
    request_id: RequestId,
    request: CompleteRequest | None = None,
) -> AppointmentRead:
    service = SchedulingService(session, dispatcher)
    appointment = await service.complete_appointment(
        appointment_id,
        actor=actor,
        override=request.override if request else False,
        request_id=request_id,
    )
    return AppointmentRead.model_validate(appointment)


@router.get(
    "/{appointment_id}/history",
    response_model=list[AuditEventRead],
    summary="Appointment audit history",
    description="Audit entries for one appointment, oldest first",
)
async def get_appointment_history(
    appointment_id: str,
    session: DbSession,
    actor: CurrentActor,
) -> list[AuditEventRead]:
    # Visibility follows the appointment itself, soft deleted or not
    await SchedulingService(session).get_appointment(
        appointment_id, actor, include_deleted=True
    )

    events = await AuditService(session).get_appointment_history(appointment_id)
    return [AuditEventRead.model_validate(e) for e in events]
