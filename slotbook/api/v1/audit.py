"""Audit entry endpoints.

IMPORTANT: This module intentionally provides READ-ONLY access to audit entries.
Entries are written only by the lifecycle engine via write_audit_event(),
inside the transaction of the transition they describe.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from slotbook.api.deps import DbSession, require_permissions
from slotbook.schemas.audit_event import AuditEventFilter, AuditEventRead
from slotbook.services.audit import AuditService
from slotbook.services.rbac import Permission

router = APIRouter()


@router.get(
    "/events",
    response_model=list[AuditEventRead],
    status_code=status.HTTP_200_OK,
    summary="List audit entries",
    description="Query audit entries with optional filters (append-only, no modification endpoints)",
    dependencies=[Depends(require_permissions(Permission.AUDIT_READ))],
)
async def list_audit_events(
    session: DbSession,
    appointment_id: str | None = None,
    actor_id: str | None = None,
    action: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> list[AuditEventRead]:
    """Query audit entries, newest first.

    Args:
        session: Database session
        appointment_id: Filter by appointment
        actor_id: Filter by actor ID
        action: Filter by action (create, reschedule, cancel, complete, confirm)
        limit: Maximum results (default 100, max 500)
        offset: Results to skip

    Returns:
        List of audit entries matching filters
    """
    filters = AuditEventFilter(
        appointment_id=appointment_id,
        actor_id=actor_id,
        action=action,
        limit=limit,
        offset=offset,
    )

    audit_service = AuditService(session)
    events = await audit_service.get_events(filters)

    return [AuditEventRead.model_validate(e) for e in events]


@router.get(
    "/events/{event_id}",
    response_model=AuditEventRead,
    status_code=status.HTTP_200_OK,
    summary="Get audit entry",
    dependencies=[Depends(require_permissions(Permission.AUDIT_READ))],
)
async def get_audit_event(
    event_id: str,
    session: DbSession,
) -> AuditEventRead:
    event = await AuditService(session).get_event_by_id(event_id)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Audit entry not found",
        )
    return AuditEventRead.model_validate(event)


# NOTE: No POST, PUT, PATCH, or DELETE endpoints are provided.
# Audit entries are append-only and created only by the lifecycle engine.
