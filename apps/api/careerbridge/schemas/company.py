"""Pydantic schemas for companies."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    industry: str | None = Field(None, max_length=255)
    website: str | None = Field(None, max_length=500)
    logo_url: str | None = Field(None, max_length=500)


class CompanyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    industry: str | None
    website: str | None
    logo_url: str | None
    ob_count: int = 0
    created_at: datetime
