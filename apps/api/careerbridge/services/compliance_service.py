"""
Compliance service - student agreement/document submission and admin review.

A student must be approved before alumni profiles become visible to them.
International students (nationality other than Japan) must include both a
work-permission document and a Japanese-language certificate.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from careerbridge.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from careerbridge.db.enums import ComplianceStatus, NotificationType, UserRole
from careerbridge.db.models import StudentProfile, User
from careerbridge.services import notification_service

logger = logging.getLogger(__name__)

DOMESTIC_NATIONALITIES = {"japan", "japanese"}
PERMISSION_DOC_MARKERS = ("permission", "activity")
LANGUAGE_CERT_MARKERS = ("japanese", "jlpt", "cert")

REVIEWABLE_STATUSES = {
    ComplianceStatus.APPROVED.value,
    ComplianceStatus.REJECTED.value,
    ComplianceStatus.PENDING.value,
}


def is_international(profile: StudentProfile) -> bool:
    nationality = (profile.nationality or "").strip().lower()
    return bool(nationality) and nationality not in DOMESTIC_NATIONALITIES


def _has_document(documents: list[str], markers: tuple[str, ...]) -> bool:
    return any(marker in doc.lower() for doc in documents for marker in markers)


def get_or_create_student_profile(db: Session, user: User) -> StudentProfile:
    profile = db.query(StudentProfile).filter(StudentProfile.id == user.id).first()
    if not profile:
        profile = StudentProfile(id=user.id, languages=[], compliance_documents=[])
        db.add(profile)
        db.flush()
    return profile


def compliance_to_dict(profile: StudentProfile | None) -> dict:
    if profile is None:
        return {
            "compliance_agreed": False,
            "compliance_agreed_at": None,
            "compliance_status": ComplianceStatus.PENDING.value,
            "compliance_submitted_at": None,
            "compliance_documents": [],
        }
    return {
        "compliance_agreed": profile.compliance_agreed,
        "compliance_agreed_at": profile.compliance_agreed_at,
        "compliance_status": profile.compliance_status,
        "compliance_submitted_at": profile.compliance_submitted_at,
        "compliance_documents": list(profile.compliance_documents or []),
    }


def is_approved(db: Session, user_id: UUID) -> bool:
    profile = db.query(StudentProfile).filter(StudentProfile.id == user_id).first()
    return bool(profile and profile.compliance_status == ComplianceStatus.APPROVED.value)


def get_compliance(db: Session, user: User, student_id: UUID | None = None) -> dict:
    """Caller's own compliance; admins may read any student's."""
    target_id = student_id or user.id
    if target_id != user.id and user.role != UserRole.ADMIN.value:
        raise PermissionDeniedError("You can only view your own compliance")
    if user.role not in (UserRole.STUDENT.value, UserRole.ADMIN.value):
        raise PermissionDeniedError("Only students and admins can view compliance")

    profile = db.query(StudentProfile).filter(StudentProfile.id == target_id).first()
    return compliance_to_dict(profile)


def submit_compliance(
    db: Session,
    user: User,
    agreed: bool,
    documents: list[str],
) -> dict:
    """Record agreement and documents, moving the profile to submitted."""
    if user.role != UserRole.STUDENT.value:
        raise PermissionDeniedError("Only students can submit compliance")
    if not agreed:
        raise ValidationError("You must agree to the terms and rules")

    profile = get_or_create_student_profile(db, user)
    if profile.compliance_status == ComplianceStatus.APPROVED.value:
        raise ValidationError("Compliance has already been approved")

    documents = [doc for doc in documents if doc]
    if is_international(profile):
        if not _has_document(documents, PERMISSION_DOC_MARKERS):
            raise ValidationError(
                "Permission for Activities Outside Qualification document is required for international students"
            )
        if not _has_document(documents, LANGUAGE_CERT_MARKERS):
            raise ValidationError(
                "Japanese Language Certification document is required for international students"
            )

    now = datetime.now(timezone.utc)
    profile.compliance_agreed = True
    profile.compliance_agreed_at = now
    profile.compliance_documents = documents
    profile.compliance_status = ComplianceStatus.SUBMITTED.value
    profile.compliance_submitted_at = now
    db.commit()
    db.refresh(profile)
    logger.info("Compliance submitted by student %s (%s documents)", user.id, len(documents))
    return compliance_to_dict(profile)


def review_compliance(db: Session, admin: User, user_id: UUID, status: str) -> dict:
    """Admin sets approved / rejected / pending for a student."""
    if status not in REVIEWABLE_STATUSES:
        raise ValidationError("status must be one of: approved, rejected, pending")

    student = db.query(User).filter(User.id == user_id).first()
    if not student:
        raise NotFoundError("User not found")
    if student.role != UserRole.STUDENT.value:
        raise ValidationError("Compliance applies to students only")

    profile = get_or_create_student_profile(db, student)
    profile.compliance_status = status
    profile.compliance_reviewed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(profile)
    logger.info("Compliance for %s set to %s by admin %s", student.id, status, admin.id)

    if status == ComplianceStatus.APPROVED.value:
        notification_service.notify(
            db, student.id, NotificationType.SYSTEM, "Compliance Approved",
            body="You can now browse alumni profiles and request meetings.",
            link="/ob-list",
        )
    elif status == ComplianceStatus.REJECTED.value:
        notification_service.notify(
            db, student.id, NotificationType.SYSTEM, "Compliance Update",
            body="Your compliance submission needs changes. Please review and resubmit.",
            link="/profile",
        )
    return compliance_to_dict(profile)
