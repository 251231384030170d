"""Audit event schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AuditEventRead(BaseModel):
    """Schema for reading audit entries."""

    id: str
    appointment_id: str
    action: str
    actor_id: str
    actor_role: str
    previous_status: str | None
    new_status: str
    metadata: dict[str, Any] | None = Field(None, validation_alias="event_metadata")
    request_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditEventFilter(BaseModel):
    """Filter parameters for querying audit entries."""

    appointment_id: str | None = None
    actor_id: str | None = None
    action: str | None = None
    limit: int = Field(default=100, le=500)
    offset: int = Field(default=0, ge=0)
