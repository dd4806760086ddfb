"""
Billing service - credit purchases, Stripe webhooks, billing history and
the Corporate-OB charge export.

Credit price depends on the buyer: companies pay CREDIT_PRICE_JPY_COMPANY
per credit, everyone else CREDIT_PRICE_JPY_DEFAULT.
"""

import csv
import io
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from careerbridge.core.config import settings
from careerbridge.core.errors import ValidationError
from careerbridge.db.enums import CreditReason, UserRole
from careerbridge.db.models import Charge, CreditTransaction, Message, ProcessedWebhookEvent, User
from careerbridge.services import payment_method_service, user_service

logger = logging.getLogger(__name__)

MIN_CREDITS_PER_PURCHASE = 1
MAX_CREDITS_PER_PURCHASE = 10_000

CREDIT_EVENTS = {"checkout.session.completed", "invoice.payment_succeeded"}

CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")
EXPORT_HEADERS = [
    "Date",
    "Amount (JPY)",
    "Status",
    "Recipient Name",
    "Recipient Email",
    "Stripe Payment Intent ID",
    "Charge ID",
]


def price_per_credit(user: User) -> int:
    if user.role == UserRole.COMPANY.value:
        return settings.CREDIT_PRICE_JPY_COMPANY
    return settings.CREDIT_PRICE_JPY_DEFAULT


def create_checkout(
    db: Session,
    user: User,
    credits: int,
    is_recurring: bool,
    payment_client,
) -> str:
    """Start a Stripe Checkout session for a credit pack. Returns the redirect URL."""
    if not MIN_CREDITS_PER_PURCHASE <= credits <= MAX_CREDITS_PER_PURCHASE:
        raise ValidationError(
            f"credits must be between {MIN_CREDITS_PER_PURCHASE} and {MAX_CREDITS_PER_PURCHASE}"
        )

    amount = credits * price_per_credit(user)
    base_url = settings.FRONTEND_URL.rstrip("/")
    metadata = {
        "user_id": str(user.id),
        "credits": str(credits),
        "user_role": user.role,
    }
    url = payment_client.create_checkout_session(
        amount=amount,
        credits=credits,
        customer_email=user.email,
        metadata=metadata,
        success_url=f"{base_url}/credits?success=true&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base_url}/credits?canceled=true",
        recurring=is_recurring,
    )
    logger.info("Checkout created for user %s: %s credits, %s JPY", user.id, credits, amount)
    return url


def _credit_metadata(event: dict[str, Any], payment_client) -> dict[str, str]:
    obj = event.get("data", {}).get("object", {}) or {}
    metadata = dict(obj.get("metadata") or {})
    if event.get("type") == "invoice.payment_succeeded" and not metadata.get("user_id"):
        subscription_id = obj.get("subscription")
        if subscription_id:
            metadata = payment_client.get_subscription_metadata(subscription_id)
    return metadata


def handle_webhook_event(db: Session, event: dict[str, Any], payment_client) -> bool:
    """
    Apply a verified Stripe event. Returns True when credits were added.

    The first invoice of a subscription is skipped: its
    checkout.session.completed already credited the purchase. Events are
    idempotent on the event id (processed_webhook_events).
    """
    event_type = event.get("type")
    if event_type not in CREDIT_EVENTS:
        logger.info("Ignoring Stripe event %s", event_type)
        return False

    obj = event.get("data", {}).get("object", {}) or {}
    if event_type == "invoice.payment_succeeded" and obj.get("billing_reason") == "subscription_create":
        return False

    event_id = event.get("id")
    if not event_id:
        logger.warning("Ignoring Stripe %s event without an id", event_type)
        return False

    metadata = _credit_metadata(event, payment_client)
    try:
        user_id = UUID(metadata.get("user_id", ""))
        credits = int(metadata.get("credits", "0"))
    except ValueError:
        logger.warning("Stripe event %s has unusable metadata: %s", event_id, metadata)
        return False
    if credits <= 0:
        return False

    # Claim the event before crediting; a concurrent delivery blocks here and
    # then fails on the primary key
    db.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("Stripe event %s already applied", event_id)
        return False

    if not user_service.add_credits(db, user_id, credits):
        db.rollback()
        logger.warning("Stripe event %s references unknown user %s", event_id, user_id)
        return False
    user_service.record_credit_transaction(
        db, user_id, credits, CreditReason.PURCHASE, reference=event_id
    )
    db.commit()
    logger.info("Added %s credits to user %s from %s", credits, user_id, event_type)
    return True


def get_history(db: Session, user: User, limit: int = 100) -> dict[str, list]:
    transactions = (
        db.query(CreditTransaction)
        .filter(CreditTransaction.user_id == user.id)
        .order_by(CreditTransaction.created_at.desc())
        .limit(limit)
        .all()
    )
    charges: list[Charge] = []
    if user.role == UserRole.CORPORATE_OB.value:
        charges = (
            db.query(Charge)
            .filter(Charge.user_id == user.id)
            .order_by(Charge.created_at.desc())
            .limit(limit)
            .all()
        )
    return {"transactions": transactions, "charges": charges}


# =============================================================================
# Charge export
# =============================================================================

def _csv_safe(value: str) -> str:
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def _serialize_csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def export_charges_csv(
    db: Session,
    user: User,
    start_date: date | None = None,
    end_date: date | None = None,
) -> str:
    """
    CSV of every charge billed to the Corporate-OB's company, newest first.

    Both dates are inclusive UTC days.
    """
    company = payment_method_service.get_company_for(db, user)
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must not be after end_date")

    recipient = aliased(User)
    query = (
        db.query(Charge, recipient)
        .join(Message, Message.id == Charge.message_id)
        .outerjoin(recipient, recipient.id == Message.recipient_id)
        .filter(Charge.company_id == company.id)
    )
    if start_date:
        query = query.filter(Charge.created_at >= datetime.combine(start_date, time.min, tzinfo=timezone.utc))
    if end_date:
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        query = query.filter(Charge.created_at < end)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_HEADERS)
    count = 0
    for charge, to_user in query.order_by(Charge.created_at.desc()).all():
        row = [
            charge.created_at,
            charge.amount,
            charge.status,
            to_user.name if to_user else None,
            to_user.email if to_user else None,
            charge.provider_charge_id,
            charge.id,
        ]
        writer.writerow([_csv_safe(_serialize_csv_value(value)) for value in row])
        count += 1
    logger.info("Exported %s charges for company %s (user %s)", count, company.id, user.id)
    return output.getvalue()
