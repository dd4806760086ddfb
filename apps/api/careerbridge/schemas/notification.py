"""Pydantic schemas for notifications and notification settings."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr

from careerbridge.db.enums import NotificationFrequency


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    title: str
    body: str | None
    link: str | None
    read_at: datetime | None
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: list[NotificationRead]
    unread_count: int


class NotificationSettingsRead(BaseModel):
    email_notifications_enabled: bool
    notification_email: str | None
    notification_frequency: NotificationFrequency
    email_message_notifications: bool
    email_meeting_notifications: bool
    email_application_updates: bool


class NotificationSettingsUpdate(BaseModel):
    """Partial update; omitted fields are unchanged."""
    email_notifications_enabled: bool | None = None
    notification_email: EmailStr | None = None
    notification_frequency: NotificationFrequency | None = None
    email_message_notifications: bool | None = None
    email_meeting_notifications: bool | None = None
    email_application_updates: bool | None = None
