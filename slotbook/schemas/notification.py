"""Notification schemas."""

from datetime import datetime

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: str
    title: str
    description: str
    type: str
    entity_type: str | None
    entity_id: str | None
    read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCount(BaseModel):
    count: int
