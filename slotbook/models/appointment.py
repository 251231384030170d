"""Appointment model and lifecycle status.

An appointment books a resource (a room, a person's calendar, a piece of
equipment) for a half-open time window on behalf of an owner. Rows are
never physically deleted; cancellation is a status change and old
cancelled rows are only soft deleted.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from slotbook.db.base import Base, SoftDeleteMixin, TimestampMixin


class AppointmentStatus(str, Enum):
    """Status of an appointment."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that occupy the resource's calendar
ACTIVE_STATUSES = frozenset(
    {
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.RESCHEDULED,
    }
)

TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    }
)


class Appointment(Base, TimestampMixin, SoftDeleteMixin):
    """A booking of ``resource_id`` for ``[start_time, end_time)``.

    ``version`` is SQLAlchemy's version counter: every UPDATE is issued as
    ``... WHERE version = :loaded_version`` and bumps it by one, so a write
    based on a stale read fails with ``StaleDataError``.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="window_order"),
        Index("ix_appointments_resource_window", "resource_id", "start_time", "end_time"),
    )

    # Whose calendar / what is booked
    owner_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    resource_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    # Details
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    location: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )
    meeting_url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    # Where email notifications go; in-app notifications go to owner_id
    contact_email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Window (UTC)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    status: Mapped[AppointmentStatus] = mapped_column(
        String(30),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
        index=True,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Cancellation tracking
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Reminder tracking (cleared on reschedule)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def current_status(self) -> AppointmentStatus:
        """Status as an enum (the column hands back plain strings)."""
        return AppointmentStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.current_status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Appointment {str(self.id)[:8]}... resource={self.resource_id} "
            f"{self.start_time}-{self.end_time} status={self.status} v{self.version}>"
        )
