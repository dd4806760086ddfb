"""Reports Router - complaints about users or the platform."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from careerbridge.core.deps import get_current_user, get_db, require_admin, require_csrf_header
from careerbridge.db.enums import ReportStatus
from careerbridge.db.models import User
from careerbridge.schemas.common import ApiResponse
from careerbridge.schemas.report import ReportCreate, ReportRead, ReportUpdate
from careerbridge.services import report_service

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse[ReportRead],
    dependencies=[Depends(require_csrf_header)],
)
def create_report(
    body: ReportCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Report a user, or the platform with reported_user_id="PLATFORM"."""
    report = report_service.create_report(
        db, user, body.reported_user_id, body.reason, body.description
    )
    return ApiResponse(data=ReportRead.model_validate(report))


@router.get("", response_model=ApiResponse[list[ReportRead]])
def list_reports(
    status: ReportStatus | None = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Admins: all reports. Others: their own."""
    reports = report_service.list_reports(db, user, status.value if status else None)
    return ApiResponse(data=[ReportRead.model_validate(r) for r in reports])


@router.put(
    "",
    response_model=ApiResponse[ReportRead],
    dependencies=[Depends(require_csrf_header)],
)
def update_report(
    body: ReportUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    report = report_service.update_report(
        db,
        admin,
        body.id,
        status=body.status.value if body.status else None,
        admin_notes=body.admin_notes,
    )
    return ApiResponse(data=ReportRead.model_validate(report))
