"""
Admin Router - /api/admin endpoints.

All routes require role == admin (401 without a session, 403 otherwise).
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from careerbridge.core.deps import get_db, require_admin, require_csrf_header
from careerbridge.db.enums import UserRole
from careerbridge.db.models import User
from careerbridge.schemas.common import ApiResponse
from careerbridge.schemas.compliance import ComplianceRead, ComplianceReview
from careerbridge.schemas.user import UserRead, UserSummary
from careerbridge.services import compliance_service, corporate_ob_service, moderation_service, user_service

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# Schemas
# =============================================================================

class StrikeRequest(BaseModel):
    action: Literal["add", "remove"]
    reason: str | None = Field(None, max_length=500)


class BanRequest(BaseModel):
    action: Literal["ban", "unban"]
    reason: str | None = Field(None, max_length=500)


class CompanySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    industry: str | None
    has_payment_method: bool = False


class CorporateObAssign(BaseModel):
    user_id: UUID
    company_id: UUID
    is_verified: bool | None = None


class CorporateObVerify(BaseModel):
    is_verified: bool


class CorporateObRead(BaseModel):
    id: UUID
    user: UserSummary
    company: CompanySummary
    is_verified: bool
    created_at: datetime


def _corporate_ob_read(assignment) -> CorporateObRead:
    company = CompanySummary.model_validate(assignment.company)
    company.has_payment_method = bool(assignment.company.stripe_customer_id)
    return CorporateObRead(
        id=assignment.id,
        user=UserSummary.model_validate(assignment.user),
        company=company,
        is_verified=assignment.is_verified,
        created_at=assignment.created_at,
    )


# =============================================================================
# Users, strikes & bans
# =============================================================================

@router.get("/users", response_model=ApiResponse[list[UserRead]])
def list_users(
    role: UserRole | None = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users = user_service.list_users(db, role.value if role else None)
    return ApiResponse(data=[UserRead.model_validate(u) for u in users])


@router.post(
    "/users/{user_id}/strikes",
    response_model=ApiResponse[UserRead],
    dependencies=[Depends(require_csrf_header)],
)
def update_strikes(
    user_id: UUID,
    body: StrikeRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Add/remove a strike (students only). Two strikes ban the account."""
    user = moderation_service.apply_strike(db, admin, user_id, body.action, body.reason)
    return ApiResponse(data=UserRead.model_validate(user))


@router.post(
    "/users/{user_id}/ban",
    response_model=ApiResponse[UserRead],
    dependencies=[Depends(require_csrf_header)],
)
def update_ban(
    user_id: UUID,
    body: BanRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = moderation_service.set_ban(db, admin, user_id, body.action, body.reason)
    return ApiResponse(data=UserRead.model_validate(user))


# =============================================================================
# Compliance review
# =============================================================================

@router.put(
    "/compliance",
    response_model=ApiResponse[ComplianceRead],
    dependencies=[Depends(require_csrf_header)],
)
def review_compliance(
    body: ComplianceReview,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = compliance_service.review_compliance(db, admin, body.user_id, body.status.value)
    return ApiResponse(data=ComplianceRead(**result))


# =============================================================================
# Corporate-OB
# =============================================================================

@router.get("/corporate-ob", response_model=ApiResponse[list[CorporateObRead]])
def list_corporate_obs(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    assignments = corporate_ob_service.list_assignments(db)
    return ApiResponse(data=[_corporate_ob_read(a) for a in assignments])


@router.post(
    "/corporate-ob",
    response_model=ApiResponse[CorporateObRead],
    dependencies=[Depends(require_csrf_header)],
)
def assign_corporate_ob(
    body: CorporateObAssign,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create or update an assignment; the user's role becomes corporate_ob."""
    assignment = corporate_ob_service.assign(
        db, admin, body.user_id, body.company_id, is_verified=body.is_verified
    )
    return ApiResponse(data=_corporate_ob_read(assignment))


@router.patch(
    "/corporate-ob/{assignment_id}",
    response_model=ApiResponse[CorporateObRead],
    dependencies=[Depends(require_csrf_header)],
)
def verify_corporate_ob(
    assignment_id: UUID,
    body: CorporateObVerify,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    assignment = corporate_ob_service.set_verified(db, admin, assignment_id, body.is_verified)
    return ApiResponse(data=_corporate_ob_read(assignment))
