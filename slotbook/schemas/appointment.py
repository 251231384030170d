"""Appointment request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from slotbook.models.appointment import AppointmentStatus
from slotbook.utils.time import ensure_utc


class AppointmentDetails(BaseModel):
    """Descriptive fields of a booking; none of them affect scheduling."""

    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    location: str | None = Field(None, max_length=200)
    meeting_url: str | None = Field(None, max_length=500)
    contact_email: str | None = Field(None, max_length=255)


class AppointmentCreate(AppointmentDetails):
    """Request to book an appointment."""

    resource_id: str = Field(min_length=1, max_length=64)
    start_time: datetime
    end_time: datetime
    # Admins may book on behalf of another owner
    owner_id: str | None = Field(None, max_length=64)

    def details(self) -> AppointmentDetails:
        return AppointmentDetails(
            title=self.title,
            description=self.description,
            location=self.location,
            meeting_url=self.meeting_url,
            contact_email=self.contact_email,
        )


class RescheduleRequest(BaseModel):
    """Move an appointment to a new window."""

    start_time: datetime
    end_time: datetime
    expected_version: int = Field(ge=1)


class CancelRequest(BaseModel):
    """Cancel an appointment."""

    expected_version: int = Field(ge=1)
    reason: str | None = Field(None, max_length=1000)


class ConfirmRequest(BaseModel):
    """Confirm a scheduled appointment."""

    expected_version: int | None = Field(None, ge=1)


class CompleteRequest(BaseModel):
    """Mark an appointment completed.

    ``override`` allows completing before ``end_time`` has passed and
    requires the force-complete permission.
    """

    override: bool = False


class AppointmentRead(BaseModel):
    """Appointment response."""

    id: str
    owner_id: str
    resource_id: str
    title: str
    description: str | None
    location: str | None
    meeting_url: str | None
    contact_email: str | None
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    version: int
    cancelled_at: datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None
    completed_at: datetime | None
    reminder_sent_at: datetime | None
    created_at: datetime
    updated_at: datetime | None

    model_config = {"from_attributes": True}

    @field_validator(
        "start_time",
        "end_time",
        "cancelled_at",
        "completed_at",
        "reminder_sent_at",
        "created_at",
        "updated_at",
    )
    @classmethod
    def as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class AppointmentFilter(BaseModel):
    """Filter parameters for listing appointments."""

    owner_id: str | None = None
    resource_id: str | None = None
    status: AppointmentStatus | None = None
    upcoming_only: bool = False
    limit: int = Field(default=50, le=200)
    offset: int = Field(default=0, ge=0)
