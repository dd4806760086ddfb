"""Pydantic schemas for users and profiles."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class UserSummary(BaseModel):
    """Minimal user info embedded in other responses."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    role: str


class UserRead(BaseModel):
    """Admin view of a user."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    role: str
    credits: int
    strikes: int
    is_banned: bool
    created_at: datetime


class ObogProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    obog_type: str | None = None
    university: str | None = None
    company_name: str | None = None
    nationality: str | None = None
    languages: list[str] = []
    topics: list[str] = []
    one_line_message: str | None = None


class AlumniRead(BaseModel):
    """Directory entry for an OB/OG or Corporate-OB."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    role: str
    obog_profile: ObogProfileRead | None = None
