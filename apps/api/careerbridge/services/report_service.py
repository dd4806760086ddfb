"""Report service - user/platform complaints and admin triage."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from careerbridge.core.errors import NotFoundError, ValidationError
from careerbridge.db.enums import ReportStatus, ReportType, UserRole
from careerbridge.db.models import Report, User

logger = logging.getLogger(__name__)

# Sentinel accepted in place of a user id for platform reports
PLATFORM_TARGET = "PLATFORM"

REPORT_STATUSES = {status.value for status in ReportStatus}


def create_report(
    db: Session,
    reporter: User,
    reported_user_id: str,
    reason: str,
    description: str,
) -> Report:
    if not reason.strip() or not description.strip():
        raise ValidationError("reason and description are required")

    if reported_user_id == PLATFORM_TARGET:
        target_id = None
        report_type = ReportType.PLATFORM
    else:
        try:
            target_id = UUID(reported_user_id)
        except ValueError:
            raise ValidationError("reported_user_id must be a user id or PLATFORM")
        if target_id == reporter.id:
            raise ValidationError("Cannot report yourself")
        if not db.query(User).filter(User.id == target_id).first():
            raise NotFoundError("Reported user not found")
        report_type = ReportType.USER

    report = Report(
        reporter_id=reporter.id,
        reported_user_id=target_id,
        report_type=report_type.value,
        reason=reason.strip(),
        description=description.strip(),
        status=ReportStatus.PENDING.value,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info("Report %s filed (%s) by %s", report.id, report.report_type, reporter.id)
    return report


def list_reports(db: Session, user: User, status: str | None = None) -> list[Report]:
    """Admins see every report; everyone else only their own."""
    query = db.query(Report).options(
        joinedload(Report.reporter), joinedload(Report.reported_user)
    )
    if user.role != UserRole.ADMIN.value:
        query = query.filter(Report.reporter_id == user.id)
    if status:
        if status not in REPORT_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(Report.status == status)
    return query.order_by(Report.created_at.desc()).all()


def update_report(
    db: Session,
    admin: User,
    report_id: UUID,
    status: str | None = None,
    admin_notes: str | None = None,
) -> Report:
    report = db.query(Report).filter(Report.id == report_id).first()
    if not report:
        raise NotFoundError("Report not found")

    if status is not None:
        if status not in REPORT_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        report.status = status
    if admin_notes is not None:
        report.admin_notes = admin_notes

    db.commit()
    db.refresh(report)
    logger.info("Report %s updated by admin %s (status=%s)", report.id, admin.id, report.status)
    return report
