"""Pydantic schemas for threads and messages."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from careerbridge.schemas.user import UserSummary


class MessageCreate(BaseModel):
    """Send a message: reply with thread_id, or start/continue with to_user_id."""
    content: str = Field(..., max_length=10000)
    to_user_id: UUID | None = None
    thread_id: UUID | None = None


class MessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    thread_id: UUID
    sender_id: UUID
    recipient_id: UUID
    content: str | dict[str, str]  # plain text or {"en": ..., "ja": ...}
    read_at: datetime | None
    created_at: datetime


class SendMessageResult(BaseModel):
    message: MessageRead
    thread_id: UUID
    credits_deducted: int
    amount_charged: int


class ThreadSummary(BaseModel):
    """Thread list row: other participant(s), last message, unread count."""
    id: UUID
    participants: list[UserSummary]
    last_message: MessageRead | None
    last_message_at: datetime | None
    unread_count: int


class ThreadDetail(BaseModel):
    id: UUID
    participant_ids: list[UUID]
    messages: list[MessageRead]
