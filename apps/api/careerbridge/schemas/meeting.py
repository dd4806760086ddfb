"""Pydantic schemas for meetings."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from careerbridge.db.enums import MeetingAction


class MeetingUpsert(BaseModel):
    """Create the thread's meeting or update its date/url."""
    booking_date_time: datetime | None = None
    meeting_url: str | None = Field(None, max_length=500)


class MeetingActionRequest(BaseModel):
    action: MeetingAction


class MeetingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    thread_id: UUID
    student_id: UUID
    obog_id: UUID
    booking_date_time: datetime | None
    meeting_url: str | None
    status: str
    meeting_status: str
    student_post_status: str | None
    student_post_status_at: datetime | None
    obog_post_status: str | None
    obog_post_status_at: datetime | None
    requires_review: bool
    cancelled_by: UUID | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class MeetingEnvelope(BaseModel):
    """meeting is null when the thread has no meeting yet."""
    meeting: MeetingRead | None


class MeetingActionResult(BaseModel):
    meeting: MeetingRead
    applied: bool
