"""Pydantic schemas for student compliance."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from careerbridge.db.enums import ComplianceStatus


class ComplianceSubmit(BaseModel):
    compliance_agreed: bool
    compliance_documents: list[str] = Field(default_factory=list, max_length=20)


class ComplianceReview(BaseModel):
    user_id: UUID
    status: ComplianceStatus


class ComplianceRead(BaseModel):
    compliance_agreed: bool
    compliance_agreed_at: datetime | None
    compliance_status: ComplianceStatus
    compliance_submitted_at: datetime | None
    compliance_documents: list[str]
