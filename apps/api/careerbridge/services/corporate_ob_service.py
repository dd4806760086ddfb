"""Corporate-OB service - assigning users to billable companies."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from careerbridge.core.errors import NotFoundError, ValidationError
from careerbridge.db.enums import UserRole
from careerbridge.db.models import Company, CorporateOb, User

logger = logging.getLogger(__name__)


def list_assignments(db: Session) -> list[CorporateOb]:
    return (
        db.query(CorporateOb)
        .options(joinedload(CorporateOb.user), joinedload(CorporateOb.company))
        .order_by(CorporateOb.created_at.desc())
        .all()
    )


def assign(
    db: Session,
    admin: User,
    user_id: UUID,
    company_id: UUID,
    is_verified: bool | None = None,
) -> CorporateOb:
    """
    Create or update the (user, company) assignment.

    The user's role becomes corporate_ob so their messages are billed to
    the company from then on.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    if user.role == UserRole.ADMIN.value:
        raise ValidationError("Admins cannot be assigned as Corporate-OB")
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise NotFoundError("Company not found")

    assignment = db.query(CorporateOb).filter(
        CorporateOb.user_id == user_id,
        CorporateOb.company_id == company_id,
    ).first()
    if assignment is None:
        assignment = CorporateOb(
            user_id=user_id,
            company_id=company_id,
            is_verified=bool(is_verified),
        )
        db.add(assignment)
    elif is_verified is not None:
        assignment.is_verified = is_verified

    previous_role = user.role
    user.role = UserRole.CORPORATE_OB.value
    db.commit()
    db.refresh(assignment)
    logger.info(
        "User %s assigned to company %s by admin %s (role %s -> corporate_ob)",
        user.id, company.id, admin.id, previous_role,
    )
    return assignment


def set_verified(db: Session, admin: User, assignment_id: UUID, is_verified: bool) -> CorporateOb:
    assignment = db.query(CorporateOb).filter(CorporateOb.id == assignment_id).first()
    if not assignment:
        raise NotFoundError("Corporate-OB assignment not found")
    assignment.is_verified = is_verified
    db.commit()
    db.refresh(assignment)
    logger.info("Corporate-OB %s verified=%s by admin %s", assignment.id, is_verified, admin.id)
    return assignment
