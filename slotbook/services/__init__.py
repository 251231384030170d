"""Business logic services."""

from slotbook.services.appointment_store import AppointmentStore
from slotbook.services.audit import AuditService, write_audit_event
from slotbook.services.conflicts import ConflictChecker, windows_overlap
from slotbook.services.maintenance import MaintenanceService
from slotbook.services.notifications import (
    NotificationDispatcher,
    NotificationKind,
    NotificationSender,
)
from slotbook.services.rbac import Permission, RBACService
from slotbook.services.reminders import ReminderService
from slotbook.services.scheduling import (
    ConflictError,
    InvalidTransitionError,
    InvalidWindowError,
    NotAuthorizedError,
    NotFoundError,
    SchedulingError,
    SchedulingService,
    TransientStoreError,
    VersionMismatchError,
)

__all__ = [
    "AppointmentStore",
    "AuditService",
    "write_audit_event",
    "ConflictChecker",
    "windows_overlap",
    "MaintenanceService",
    "NotificationDispatcher",
    "NotificationKind",
    "NotificationSender",
    "Permission",
    "RBACService",
    "ReminderService",
    "SchedulingService",
    "SchedulingError",
    "ConflictError",
    "InvalidTransitionError",
    "InvalidWindowError",
    "NotAuthorizedError",
    "NotFoundError",
    "TransientStoreError",
    "VersionMismatchError",
]
