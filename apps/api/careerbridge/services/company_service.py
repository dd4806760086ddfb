"""Company service - the organizations Corporate-OBs belong to."""

import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from careerbridge.core.errors import ValidationError
from careerbridge.db.models import Company, CorporateOb, User

logger = logging.getLogger(__name__)


def list_companies(db: Session) -> list[dict[str, Any]]:
    """Companies with their Corporate-OB count, largest first."""
    ob_counts = (
        db.query(CorporateOb.company_id, func.count(CorporateOb.id).label("ob_count"))
        .group_by(CorporateOb.company_id)
        .subquery()
    )
    rows = (
        db.query(Company, func.coalesce(ob_counts.c.ob_count, 0))
        .outerjoin(ob_counts, ob_counts.c.company_id == Company.id)
        .all()
    )
    rows.sort(key=lambda row: (-row[1], row[0].name.lower()))
    return [{"company": company, "ob_count": count} for company, count in rows]


def create_company(
    db: Session,
    admin: User,
    name: str,
    industry: str | None = None,
    website: str | None = None,
    logo_url: str | None = None,
) -> Company:
    name = name.strip()
    if not name:
        raise ValidationError("Company name is required")
    company = Company(
        name=name,
        industry=industry or None,
        website=website or None,
        logo_url=logo_url or None,
    )
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info("Company %s (%s) created by admin %s", company.id, company.name, admin.id)
    return company
