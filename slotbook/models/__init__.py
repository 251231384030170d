"""Database models for Slotbook."""

from slotbook.models.appointment import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentStatus,
)
from slotbook.models.audit_event import AuditAction, AuditEvent, AuditImmutableError
from slotbook.models.notification import Notification, NotificationType

__all__ = [
    # Appointments
    "Appointment",
    "AppointmentStatus",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    # Audit
    "AuditEvent",
    "AuditAction",
    "AuditImmutableError",
    # Notifications
    "Notification",
    "NotificationType",
]
