"""Append-only audit entries for appointment state changes."""

from enum import Enum

from sqlalchemy import ForeignKey, String, event
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from slotbook.db.base import Base, TimestampMixin


class AuditAction(str, Enum):
    """State-changing operation recorded by an entry."""

    CREATE = "create"
    CONFIRM = "confirm"
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"
    COMPLETE = "complete"


class AuditImmutableError(Exception):
    """Raised when code tries to modify or delete a persisted audit entry."""

    pass


class AuditEvent(Base, TimestampMixin):
    """Immutable record of one appointment transition.

    IMPORTANT: This model intentionally has no update or delete
    operations. The ORM listeners below reject both, and the PostgreSQL
    migration installs a trigger that does the same at the database level.
    """

    __tablename__ = "audit_events"

    appointment_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("appointments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    action: Mapped[AuditAction] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )

    # Actor as supplied by the auth provider
    actor_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    actor_role: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    # Null for create
    previous_status: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )
    new_status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    event_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )
    request_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<AuditEvent {self.action} by {self.actor_role}:{self.actor_id} "
            f"on appointment {self.appointment_id}>"
        )


@event.listens_for(AuditEvent, "before_update")
def _reject_audit_update(mapper, connection, target: AuditEvent) -> None:
    raise AuditImmutableError(f"Audit event {target.id} cannot be modified")


@event.listens_for(AuditEvent, "before_delete")
def _reject_audit_delete(mapper, connection, target: AuditEvent) -> None:
    raise AuditImmutableError(f"Audit event {target.id} cannot be deleted")
