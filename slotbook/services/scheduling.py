"""Appointment lifecycle engine.

Every transition runs as one database transaction:

    load (row lock) -> authorize -> transition check -> version check
    -> conflict check -> write (version bump) -> audit entry -> commit

and only after the commit is the notification dispatched. Errors are raised
as the typed exceptions below; the API layer maps them to HTTP responses.
"""

import functools
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Sequence

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from slotbook.core.config import settings
from slotbook.models.appointment import Appointment, AppointmentStatus
from slotbook.models.audit_event import AuditAction
from slotbook.schemas.actor import Actor
from slotbook.schemas.appointment import AppointmentDetails, AppointmentFilter
from slotbook.services.appointment_store import AppointmentStore
from slotbook.services.audit import write_audit_event
from slotbook.services.conflicts import ConflictChecker
from slotbook.services.notifications import NotificationDispatcher, NotificationKind
from slotbook.services.rbac import Permission, RBACService
from slotbook.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Base class for scheduling failures surfaced to callers."""

    pass


class ConflictError(SchedulingError):
    """Requested window overlaps an active appointment on the same resource."""

    def __init__(self, conflicting_appointment_id: str):
        self.conflicting_appointment_id = conflicting_appointment_id
        super().__init__("This time slot is already booked")


class InvalidTransitionError(SchedulingError):
    """Requested status change is not allowed from the current status."""

    def __init__(
        self,
        current: AppointmentStatus,
        requested: AppointmentStatus,
        reason: str | None = None,
    ):
        self.current = current
        self.requested = requested
        self.reason = reason
        message = (
            f"Cannot move appointment from {current.value} to {requested.value}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class VersionMismatchError(SchedulingError):
    """The appointment changed since the caller last read it."""

    def __init__(
        self,
        appointment_id: str,
        expected: int | None = None,
        current: int | None = None,
    ):
        self.appointment_id = appointment_id
        self.expected = expected
        self.current = current
        super().__init__(
            "Appointment was modified by someone else; "
            "refresh it and try again"
        )


class NotFoundError(SchedulingError):
    """Appointment does not exist (or has been soft deleted)."""

    def __init__(self, appointment_id: str):
        self.appointment_id = appointment_id
        super().__init__(f"Appointment {appointment_id} not found")


class NotAuthorizedError(SchedulingError):
    """Actor may not perform this operation on this appointment."""

    pass


class InvalidWindowError(SchedulingError, ValueError):
    """start_time is not strictly before end_time."""

    pass


class TransientStoreError(SchedulingError):
    """Transaction failed for infrastructure reasons; retry the whole call."""

    def __init__(self, message: str, sqlstate: str | None = None):
        self.sqlstate = sqlstate
        super().__init__(message)


# Allowed edges of the lifecycle; anything else is an invalid transition
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
        }
    ),
    AppointmentStatus.RESCHEDULED: frozenset(
        {
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
        }
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}

# PostgreSQL: serialization failure, deadlock, lock not available, query cancelled
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03", "57014"})

# Aborted by the database in favour of a concurrent transaction; a fresh run
# sees the winner's committed rows
RERUN_SQLSTATES = frozenset({"40001", "40P01"})
MAX_RERUNS = 1


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_transient_error(exc: DBAPIError) -> bool:
    """Whether a driver error is worth retrying from scratch."""
    if exc.connection_invalidated:
        return True
    if _sqlstate(exc) in TRANSIENT_SQLSTATES:
        return True
    # SQLite busy timeout
    return "database is locked" in str(exc.orig)


def can_transition(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def rerun_on_serialization_failure(method):
    """Run a transition again when the database aborted it for a concurrent one.

    The re-run starts from a fresh read, so the loser of a race sees the
    winner's committed row and gets ConflictError or VersionMismatchError.
    """

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        reruns = 0
        while True:
            try:
                return await method(self, *args, **kwargs)
            except TransientStoreError as e:
                if e.sqlstate not in RERUN_SQLSTATES or reruns >= MAX_RERUNS:
                    raise
                reruns += 1
                logger.info(
                    f"Re-running {method.__name__} after serialization failure "
                    f"(SQLSTATE {e.sqlstate})"
                )

    return wrapper


class SchedulingService:
    """Create, reschedule, cancel, confirm and complete appointments."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.store = AppointmentStore(session)
        self.conflicts = ConflictChecker(self.store)

    @asynccontextmanager
    async def _transaction(self, appointment_id: str | None = None) -> AsyncIterator[None]:
        """Commit on success, roll back on any failure.

        Store-level failures are translated here so callers only ever see
        SchedulingError subclasses for concurrency problems.
        """
        try:
            yield
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            logger.info(f"Concurrent update detected on appointment {appointment_id}")
            raise VersionMismatchError(appointment_id or "unknown") from e
        except DBAPIError as e:
            await self.session.rollback()
            if is_transient_error(e):
                logger.warning(f"Transient store failure, transaction rolled back: {e.orig}")
                raise TransientStoreError(
                    "The booking could not be saved right now; please retry",
                    sqlstate=_sqlstate(e),
                ) from e
            raise
        except Exception:
            await self.session.rollback()
            raise

    def _notify(
        self,
        kind: NotificationKind,
        appointment: Appointment,
        **context,
    ) -> None:
        if self.dispatcher is None:
            return
        try:
            self.dispatcher.dispatch(kind, appointment, **context)
        except Exception:
            logger.exception(
                f"Notification dispatch failed for appointment {appointment.id}"
            )

    @staticmethod
    def _validate_window(
        start_time: datetime,
        end_time: datetime,
    ) -> tuple[datetime, datetime]:
        start_time = ensure_utc(start_time)
        end_time = ensure_utc(end_time)
        if start_time >= end_time:
            raise InvalidWindowError("start_time must be before end_time")
        return start_time, end_time

    @staticmethod
    def _check_transition(
        appointment: Appointment,
        requested: AppointmentStatus,
    ) -> AppointmentStatus:
        current = appointment.current_status
        if not can_transition(current, requested):
            raise InvalidTransitionError(current, requested)
        return current

    @staticmethod
    def _check_version(appointment: Appointment, expected_version: int | None) -> None:
        if expected_version is not None and appointment.version != expected_version:
            raise VersionMismatchError(
                str(appointment.id),
                expected=expected_version,
                current=appointment.version,
            )

    async def _load_for_write(self, appointment_id: str, actor: Actor) -> Appointment:
        appointment = await self.store.get(appointment_id, for_update=True)
        if appointment is None:
            raise NotFoundError(appointment_id)
        if not RBACService.can_write(actor, appointment.owner_id):
            raise NotAuthorizedError(
                f"Actor {actor.actor_id} may not modify appointment {appointment_id}"
            )
        return appointment

    async def _ensure_free(
        self,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: str | None = None,
    ) -> None:
        conflict = await self.conflicts.find_conflict(
            resource_id, start_time, end_time, exclude_appointment_id
        )
        if conflict is not None:
            raise ConflictError(str(conflict.id))

    @rerun_on_serialization_failure
    async def create_appointment(
        self,
        actor: Actor,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        details: AppointmentDetails,
        owner_id: str | None = None,
        request_id: str | None = None,
    ) -> Appointment:
        """Book ``resource_id`` for ``[start_time, end_time)``.

        Args:
            actor: Who is booking
            resource_id: What is being booked
            start_time: Window start (timezone-aware, or naive UTC)
            end_time: Window end, exclusive
            details: Title, location and other descriptive fields
            owner_id: Whose calendar; defaults to the actor
            request_id: Correlation ID recorded on the audit entry

        Returns:
            The new appointment in ``scheduled`` status at version 1

        Raises:
            InvalidWindowError: Window is empty or inverted
            NotAuthorizedError: Booking for someone else without permission
            ConflictError: Window overlaps an active appointment on the resource
        """
        start_time, end_time = self._validate_window(start_time, end_time)
        owner_id = owner_id or actor.actor_id

        if not RBACService.can_write(actor, owner_id):
            raise NotAuthorizedError(
                f"Actor {actor.actor_id} may not book on behalf of {owner_id}"
            )

        async with self._transaction():
            await self._ensure_free(resource_id, start_time, end_time)

            appointment = await self.store.add(
                owner_id=owner_id,
                resource_id=resource_id,
                start_time=start_time,
                end_time=end_time,
                details=details,
            )

            await write_audit_event(
                self.session,
                appointment_id=str(appointment.id),
                action=AuditAction.CREATE,
                actor=actor,
                previous_status=None,
                new_status=AppointmentStatus.SCHEDULED,
                metadata={
                    "resource_id": resource_id,
                    "start_time": start_time.isoformat(),
                    "end_time": end_time.isoformat(),
                },
                request_id=request_id,
            )

        logger.info(
            f"Appointment {appointment.id} created on resource {resource_id} "
            f"by {actor.actor_id}"
        )
        self._notify(NotificationKind.CREATED, appointment)
        return appointment

    @rerun_on_serialization_failure
    async def reschedule_appointment(
        self,
        appointment_id: str,
        new_start: datetime,
        new_end: datetime,
        actor: Actor,
        expected_version: int,
        request_id: str | None = None,
    ) -> Appointment:
        """Move an active appointment to a new window.

        The appointment's own current window never conflicts with itself.
        Clears ``reminder_sent_at`` so the new window gets its own reminder.
        """
        new_start, new_end = self._validate_window(new_start, new_end)

        async with self._transaction(appointment_id):
            appointment = await self._load_for_write(appointment_id, actor)
            previous_status = self._check_transition(
                appointment, AppointmentStatus.RESCHEDULED
            )
            self._check_version(appointment, expected_version)

            await self._ensure_free(
                appointment.resource_id,
                new_start,
                new_end,
                exclude_appointment_id=str(appointment.id),
            )

            previous_start = ensure_utc(appointment.start_time)
            previous_end = ensure_utc(appointment.end_time)

            appointment.start_time = new_start
            appointment.end_time = new_end
            appointment.status = AppointmentStatus.RESCHEDULED.value
            appointment.reminder_sent_at = None
            await self.store.save(appointment)

            await write_audit_event(
                self.session,
                appointment_id=str(appointment.id),
                action=AuditAction.RESCHEDULE,
                actor=actor,
                previous_status=previous_status,
                new_status=AppointmentStatus.RESCHEDULED,
                metadata={
                    "previous_start_time": previous_start.isoformat(),
                    "previous_end_time": previous_end.isoformat(),
                    "start_time": new_start.isoformat(),
                    "end_time": new_end.isoformat(),
                },
                request_id=request_id,
            )

        logger.info(f"Appointment {appointment_id} rescheduled by {actor.actor_id}")
        self._notify(
            NotificationKind.RESCHEDULED,
            appointment,
            previous_start=previous_start,
        )
        return appointment

    @rerun_on_serialization_failure
    async def cancel_appointment(
        self,
        appointment_id: str,
        actor: Actor,
        expected_version: int,
        reason: str | None = None,
        request_id: str | None = None,
    ) -> Appointment:
        """Cancel an active appointment, freeing its window."""
        async with self._transaction(appointment_id):
            appointment = await self._load_for_write(appointment_id, actor)
            previous_status = self._check_transition(
                appointment, AppointmentStatus.CANCELLED
            )
            self._check_version(appointment, expected_version)

            appointment.status = AppointmentStatus.CANCELLED.value
            appointment.cancelled_at = utc_now()
            appointment.cancelled_by = actor.actor_id
            appointment.cancellation_reason = reason
            await self.store.save(appointment)

            await write_audit_event(
                self.session,
                appointment_id=str(appointment.id),
                action=AuditAction.CANCEL,
                actor=actor,
                previous_status=previous_status,
                new_status=AppointmentStatus.CANCELLED,
                metadata={"reason": reason} if reason else None,
                request_id=request_id,
            )

        logger.info(f"Appointment {appointment_id} cancelled by {actor.actor_id}")
        self._notify(NotificationKind.CANCELLED, appointment, reason=reason)
        return appointment

    @rerun_on_serialization_failure
    async def complete_appointment(
        self,
        appointment_id: str,
        actor: Actor,
        override: bool = False,
        expected_version: int | None = None,
        request_id: str | None = None,
    ) -> Appointment:
        """Mark an active appointment completed.

        Only allowed once ``end_time`` has passed unless ``override`` is set,
        which needs the force-complete permission.
        """
        if override and not RBACService.has_permission(
            actor.role, Permission.APPOINTMENTS_FORCE_COMPLETE
        ):
            raise NotAuthorizedError(
                f"Actor {actor.actor_id} may not complete appointments early"
            )

        async with self._transaction(appointment_id):
            appointment = await self._load_for_write(appointment_id, actor)
            previous_status = self._check_transition(
                appointment, AppointmentStatus.COMPLETED
            )
            self._check_version(appointment, expected_version)

            now = utc_now()
            if not override and ensure_utc(appointment.end_time) > now:
                raise InvalidTransitionError(
                    previous_status,
                    AppointmentStatus.COMPLETED,
                    reason="appointment has not ended yet",
                )

            appointment.status = AppointmentStatus.COMPLETED.value
            appointment.completed_at = now
            await self.store.save(appointment)

            await write_audit_event(
                self.session,
                appointment_id=str(appointment.id),
                action=AuditAction.COMPLETE,
                actor=actor,
                previous_status=previous_status,
                new_status=AppointmentStatus.COMPLETED,
                metadata={"override": True} if override else None,
                request_id=request_id,
            )

        logger.info(f"Appointment {appointment_id} completed by {actor.actor_id}")
        self._notify(NotificationKind.COMPLETED, appointment)
        return appointment

    @rerun_on_serialization_failure
    async def confirm_appointment(
        self,
        appointment_id: str,
        actor: Actor,
        expected_version: int | None = None,
        request_id: str | None = None,
    ) -> Appointment:
        """Confirm a scheduled appointment."""
        async with self._transaction(appointment_id):
            appointment = await self._load_for_write(appointment_id, actor)
            previous_status = self._check_transition(
                appointment, AppointmentStatus.CONFIRMED
            )
            self._check_version(appointment, expected_version)

            appointment.status = AppointmentStatus.CONFIRMED.value
            await self.store.save(appointment)

            await write_audit_event(
                self.session,
                appointment_id=str(appointment.id),
                action=AuditAction.CONFIRM,
                actor=actor,
                previous_status=previous_status,
                new_status=AppointmentStatus.CONFIRMED,
                request_id=request_id,
            )

        logger.info(f"Appointment {appointment_id} confirmed by {actor.actor_id}")
        self._notify(NotificationKind.CONFIRMED, appointment)
        return appointment

    async def get_appointment(
        self,
        appointment_id: str,
        actor: Actor,
        include_deleted: bool = False,
    ) -> Appointment:
        appointment = await self.store.get(appointment_id, include_deleted=include_deleted)
        if appointment is None:
            raise NotFoundError(appointment_id)
        if not RBACService.can_read(actor, appointment.owner_id):
            raise NotAuthorizedError(
                f"Actor {actor.actor_id} may not view appointment {appointment_id}"
            )
        return appointment

    async def list_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilter,
    ) -> Sequence[Appointment]:
        """List appointments visible to ``actor``.

        Actors without read-all permission only ever see their own.
        """
        if not RBACService.has_permission(actor.role, Permission.APPOINTMENTS_READ_ALL):
            filters = filters.model_copy(update={"owner_id": actor.actor_id})
        return await self.store.list_matching(filters)

    async def find_due_for_reminder(
        self,
        now: datetime | None = None,
        lead: timedelta | None = None,
        window: timedelta | None = None,
    ) -> Sequence[Appointment]:
        """Active appointments that should get a reminder at ``now``. No side effects."""
        now = ensure_utc(now) if now is not None else utc_now()
        lead = lead if lead is not None else timedelta(hours=settings.reminder_lead_hours)
        window = (
            window
            if window is not None
            else timedelta(minutes=settings.reminder_window_minutes)
        )
        return await self.store.find_due_for_reminder(now, lead, window)
