"""
Payment method service - card setup for Corporate-OB companies.

Corporate-OB messages are charged to the company's Stripe customer. Setup
flow:
1. ensure_customer() creates the customer once and stores its id
2. create_setup_intent() hands the client secret to Stripe Elements
3. save_payment_method() attaches the confirmed card (first card becomes
   the default used for off-session charges)
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from careerbridge.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from careerbridge.db.enums import UserRole
from careerbridge.db.models import Company, CorporateOb, User

logger = logging.getLogger(__name__)


def get_company_for(db: Session, user: User) -> Company:
    """The company billed for the Corporate-OB's messages."""
    if user.role != UserRole.CORPORATE_OB.value:
        raise PermissionDeniedError("Only Corporate-OBs manage company billing")
    link = (
        db.query(CorporateOb)
        .filter(CorporateOb.user_id == user.id)
        .order_by(CorporateOb.created_at.asc())
        .first()
    )
    if not link:
        raise NotFoundError("No company assigned to this account")
    return link.company


def ensure_customer(db: Session, user: User, payment_client) -> tuple[Company, str]:
    """Return the company's Stripe customer id, creating the customer once."""
    company = get_company_for(db, user)
    if company.stripe_customer_id:
        return company, company.stripe_customer_id

    # Two Corporate-OBs of the same company may set up billing at once
    company = (
        db.query(Company)
        .filter(Company.id == company.id)
        .with_for_update()
        .populate_existing()
        .one()
    )
    if company.stripe_customer_id:
        return company, company.stripe_customer_id

    customer_id = payment_client.create_customer(
        email=user.email,
        name=company.name,
        metadata={"company_id": str(company.id), "corporate_ob_id": str(user.id)},
    )
    company.stripe_customer_id = customer_id
    db.commit()
    logger.info("Stripe customer %s created for company %s", customer_id, company.id)
    return company, customer_id


def create_setup_intent(db: Session, user: User, payment_client) -> dict[str, str]:
    _, customer_id = ensure_customer(db, user, payment_client)
    return payment_client.create_setup_intent(customer_id)


def list_payment_methods(db: Session, user: User, payment_client) -> list[dict[str, Any]]:
    company = get_company_for(db, user)
    if not company.stripe_customer_id:
        return []
    return payment_client.list_payment_methods(company.stripe_customer_id)


def save_payment_method(db: Session, user: User, payment_client, payment_method_id: str) -> bool:
    """Attach a confirmed card. Returns True when it became the default."""
    if not payment_method_id:
        raise ValidationError("payment_method_id is required")
    company, customer_id = ensure_customer(db, user, payment_client)
    payment_client.attach_payment_method(payment_method_id, customer_id)

    methods = payment_client.list_payment_methods(customer_id)
    is_default = len(methods) == 1
    if is_default:
        payment_client.set_default_payment_method(customer_id, payment_method_id)
    logger.info(
        "Payment method %s saved for company %s by %s (default=%s)",
        payment_method_id, company.id, user.id, is_default,
    )
    return is_default


def _require_customer(db: Session, user: User) -> tuple[Company, str]:
    company = get_company_for(db, user)
    if not company.stripe_customer_id:
        raise NotFoundError("No billing customer for this company")
    return company, company.stripe_customer_id


def set_default_payment_method(db: Session, user: User, payment_client, payment_method_id: str) -> None:
    if not payment_method_id:
        raise ValidationError("payment_method_id is required")
    company, customer_id = _require_customer(db, user)
    payment_client.set_default_payment_method(customer_id, payment_method_id)
    logger.info("Default payment method for company %s set to %s", company.id, payment_method_id)


def remove_payment_method(db: Session, user: User, payment_client, payment_method_id: str) -> None:
    """Detach a card. The default card cannot be removed."""
    if not payment_method_id:
        raise ValidationError("payment_method_id is required")
    company, customer_id = _require_customer(db, user)

    methods = {m["id"]: m for m in payment_client.list_payment_methods(customer_id)}
    method = methods.get(payment_method_id)
    if method is None:
        raise NotFoundError("Payment method not found")
    if method["is_default"]:
        raise ValidationError(
            "Cannot delete the default payment method. Set another card as default first.",
            code="DEFAULT_PAYMENT_METHOD",
        )
    payment_client.detach_payment_method(payment_method_id)
    logger.info("Payment method %s removed from company %s", payment_method_id, company.id)
