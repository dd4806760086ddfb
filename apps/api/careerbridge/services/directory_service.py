"""Alumni directory, gated on student compliance."""

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from careerbridge.core.errors import PermissionDeniedError
from careerbridge.db.enums import ALUMNI_ROLES, UserRole
from careerbridge.db.models import ObogProfile, User
from careerbridge.services import compliance_service


def ensure_can_browse_alumni(db: Session, user: User) -> None:
    if user.role == UserRole.STUDENT.value and not compliance_service.is_approved(db, user.id):
        raise PermissionDeniedError(
            "Complete compliance review to view alumni profiles",
            code="COMPLIANCE_REQUIRED",
        )


def list_alumni(
    db: Session,
    user: User,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[User]:
    """Visible, non-banned alumni (OB/OG and Corporate-OB)."""
    ensure_can_browse_alumni(db, user)

    query = (
        db.query(User)
        .options(joinedload(User.obog_profile))
        .filter(User.role.in_(ALUMNI_ROLES), User.is_banned.is_(False))
    )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.outerjoin(ObogProfile, ObogProfile.id == User.id).filter(
            or_(
                User.name.ilike(pattern),
                ObogProfile.company_name.ilike(pattern),
                ObogProfile.university.ilike(pattern),
            )
        )
    return query.order_by(User.name.asc()).offset(offset).limit(limit).all()
