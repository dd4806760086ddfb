"""Profile Router - student compliance and the alumni directory."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from careerbridge.core.deps import get_current_user, get_db, require_csrf_header
from careerbridge.db.models import User
from careerbridge.schemas.common import ApiResponse
from careerbridge.schemas.compliance import ComplianceRead, ComplianceSubmit
from careerbridge.schemas.user import AlumniRead
from careerbridge.services import compliance_service, directory_service

router = APIRouter(tags=["profile"])


@router.get("/profile/compliance", response_model=ApiResponse[ComplianceRead])
def get_compliance(
    student_id: UUID | None = Query(None, description="Admins only: another student's id"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = compliance_service.get_compliance(db, user, student_id)
    return ApiResponse(data=ComplianceRead(**result))


@router.post(
    "/profile/compliance",
    response_model=ApiResponse[ComplianceRead],
    dependencies=[Depends(require_csrf_header)],
)
def submit_compliance(
    body: ComplianceSubmit,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Students agree to the rules and attach documents for review."""
    result = compliance_service.submit_compliance(
        db, user, body.compliance_agreed, body.compliance_documents
    )
    return ApiResponse(data=ComplianceRead(**result))


@router.get("/obog", response_model=ApiResponse[list[AlumniRead]])
def list_alumni(
    search: str | None = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Alumni directory. Students need approved compliance (403 COMPLIANCE_REQUIRED)."""
    alumni = directory_service.list_alumni(db, user, search=search, limit=limit, offset=offset)
    return ApiResponse(data=[AlumniRead.model_validate(a) for a in alumni])
