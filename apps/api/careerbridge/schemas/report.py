"""Pydantic schemas for reports."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from careerbridge.db.enums import ReportStatus
from careerbridge.schemas.user import UserSummary


class ReportCreate(BaseModel):
    reported_user_id: str = Field(..., description="User id, or 'PLATFORM'")
    reason: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=5000)


class ReportUpdate(BaseModel):
    id: UUID
    status: ReportStatus | None = None
    admin_notes: str | None = Field(None, max_length=5000)


class ReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reporter_id: UUID
    reported_user_id: UUID | None
    report_type: str
    reason: str
    description: str
    status: str
    admin_notes: str | None
    created_at: datetime
    updated_at: datetime
    reporter: UserSummary | None = None
    reported_user: UserSummary | None = None
