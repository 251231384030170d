"""Pydantic schemas for request/response validation."""

from slotbook.schemas.actor import Actor, ActorRole
from slotbook.schemas.appointment import (
    AppointmentCreate,
    AppointmentDetails,
    AppointmentFilter,
    AppointmentRead,
    CancelRequest,
    CompleteRequest,
    ConfirmRequest,
    RescheduleRequest,
)
from slotbook.schemas.audit_event import AuditEventFilter, AuditEventRead
from slotbook.schemas.notification import NotificationRead, UnreadCount

__all__ = [
    "Actor",
    "ActorRole",
    "AppointmentCreate",
    "AppointmentDetails",
    "AppointmentFilter",
    "AppointmentRead",
    "RescheduleRequest",
    "CancelRequest",
    "CompleteRequest",
    "ConfirmRequest",
    "AuditEventRead",
    "AuditEventFilter",
    "NotificationRead",
    "UnreadCount",
]
