"""
Message service - two-party threads, sends and credit/charge billing.

Send flow:
1. resolve_send_target() validates the request and finds the recipient
2. send_message() deducts credits (non Corporate-OB), creates the thread if
   needed and inserts the message in one transaction
3. Corporate-OB senders are charged per message after the message commits
4. The recipient is notified (best-effort)
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from careerbridge.core.config import settings
from careerbridge.core.errors import (
    IntegrationError,
    NotFoundError,
    PaymentRequiredError,
    PermissionDeniedError,
    ValidationError,
)
from careerbridge.db.enums import ChargeStatus, CreditReason, NotificationType, UserRole
from careerbridge.db.models import Charge, CorporateOb, Message, Thread, User
from careerbridge.services import notification_service, user_service
from careerbridge.services.payment_client import PaymentProviderError

logger = logging.getLogger(__name__)

MESSAGE_CURRENCY = "jpy"
NO_PAYMENT_METHOD = "no_payment_method"


@dataclass
class SendTarget:
    recipient: User
    thread: Thread | None


@dataclass
class SendResult:
    message: Message
    thread_id: UUID
    credits_deducted: int
    amount_charged: int


def ordered_pair(a: UUID, b: UUID) -> tuple[UUID, UUID]:
    return (a, b) if str(a) < str(b) else (b, a)


# =============================================================================
# Threads
# =============================================================================

def get_thread(db: Session, thread_id: UUID) -> Thread | None:
    return db.query(Thread).filter(Thread.id == thread_id).first()


def find_thread_between(db: Session, user_a: UUID, user_b: UUID) -> Thread | None:
    first, second = ordered_pair(user_a, user_b)
    return db.query(Thread).filter(
        Thread.participant_a_id == first,
        Thread.participant_b_id == second,
    ).first()


def _get_or_insert_thread(db: Session, user_a: UUID, user_b: UUID) -> Thread:
    """
    Find the pair's thread or insert it within the open transaction.

    A concurrent insert for the same pair surfaces as IntegrityError on flush.
    """
    thread = find_thread_between(db, user_a, user_b)
    if thread:
        return thread
    first, second = ordered_pair(user_a, user_b)
    thread = Thread(participant_a_id=first, participant_b_id=second)
    db.add(thread)
    db.flush()
    return thread


def list_threads(db: Session, user: User) -> list[dict[str, Any]]:
    """
    Threads visible to the user, most recent activity first.

    Admins see every thread (read-only); unread counts are then zero.
    """
    query = db.query(Thread)
    if user.role != UserRole.ADMIN.value:
        query = query.filter(
            or_(Thread.participant_a_id == user.id, Thread.participant_b_id == user.id)
        )
    threads = query.all()
    threads.sort(key=lambda t: t.last_message_at or t.created_at, reverse=True)
    if not threads:
        return []

    thread_ids = [t.id for t in threads]
    unread_rows = (
        db.query(Message.thread_id, func.count(Message.id))
        .filter(
            Message.thread_id.in_(thread_ids),
            Message.recipient_id == user.id,
            Message.read_at.is_(None),
        )
        .group_by(Message.thread_id)
        .all()
    )
    unread = {thread_id: count for thread_id, count in unread_rows}

    participant_ids = {pid for t in threads for pid in t.participant_ids}
    users = {u.id: u for u in db.query(User).filter(User.id.in_(participant_ids)).all()}

    items = []
    for thread in threads:
        last_message = (
            db.query(Message)
            .filter(Message.thread_id == thread.id)
            .order_by(Message.created_at.desc())
            .first()
        )
        if thread.has_participant(user.id):
            others = [users.get(thread.other_participant(user.id))]
        else:
            others = [users.get(pid) for pid in thread.participant_ids]
        items.append({
            "thread": thread,
            "participants": [u for u in others if u is not None],
            "last_message": last_message,
            "unread_count": unread.get(thread.id, 0),
        })
    return items


def get_thread_messages(db: Session, user: User, thread_id: UUID) -> tuple[Thread, list[Message]]:
    """
    Messages of a thread in chronological order.

    Marks messages addressed to a participant as read; admin views change
    nothing.
    """
    thread = get_thread(db, thread_id)
    if not thread:
        raise NotFoundError("Thread not found")

    is_participant = thread.has_participant(user.id)
    if not is_participant and user.role != UserRole.ADMIN.value:
        raise PermissionDeniedError("Not a participant in this thread")

    if is_participant:
        updated = (
            db.query(Message)
            .filter(
                Message.thread_id == thread.id,
                Message.recipient_id == user.id,
                Message.read_at.is_(None),
            )
            .update({Message.read_at: datetime.now(timezone.utc)}, synchronize_session=False)
        )
        if updated:
            db.commit()

    messages = (
        db.query(Message)
        .filter(Message.thread_id == thread.id)
        .order_by(Message.created_at.asc())
        .all()
    )
    return thread, messages


# =============================================================================
# Sending
# =============================================================================

def resolve_send_target(
    db: Session,
    sender: User,
    content: str,
    thread_id: UUID | None = None,
    to_user_id: UUID | None = None,
) -> SendTarget:
    """Validate a send request and return the recipient (and thread, if any)."""
    if not content or not content.strip():
        raise ValidationError("Message content is required")
    if not thread_id and not to_user_id:
        raise ValidationError("Either thread_id or to_user_id is required")
    if sender.is_banned:
        raise PermissionDeniedError("Your account has been suspended", code="USER_BANNED")

    if thread_id:
        thread = get_thread(db, thread_id)
        if not thread:
            raise NotFoundError("Thread not found")
        if not thread.has_participant(sender.id):
            raise PermissionDeniedError("Not a participant in this thread")
        recipient = user_service.get_user(db, thread.other_participant(sender.id))
        if not recipient:
            raise NotFoundError("Recipient not found")
        return SendTarget(recipient=recipient, thread=thread)

    if sender.role == UserRole.OBOG.value:
        raise PermissionDeniedError(
            "Alumni cannot start new conversations. Please wait for a student to message you first.",
            code="ALUMNI_CANNOT_INITIATE",
        )

    recipient = user_service.get_user(db, to_user_id)
    if not recipient:
        raise NotFoundError("Recipient not found")
    if recipient.id == sender.id:
        raise ValidationError("Cannot send a message to yourself")
    if sender.role == UserRole.STUDENT.value and recipient.role == UserRole.CORPORATE_OB.value:
        raise PermissionDeniedError(
            "Students cannot start conversations with Corporate-OBs",
            code="STUDENT_CANNOT_INITIATE_CORP_OB",
        )

    return SendTarget(recipient=recipient, thread=find_thread_between(db, sender.id, recipient.id))


def credit_cost_for(sender: User) -> int:
    """Corporate-OBs pay per message by card, everyone else in credits."""
    if sender.role == UserRole.CORPORATE_OB.value:
        return 0
    return settings.MESSAGE_CREDIT_COST


def send_message(
    db: Session,
    sender: User,
    target: SendTarget,
    content: Any,
    payment_client=None,
) -> SendResult:
    """
    Persist a message and bill the sender.

    content is the already-prepared body (plain string or {"en", "ja"}).

    Raises:
        PaymentRequiredError INSUFFICIENT_CREDITS: nothing was written
        PaymentRequiredError NO_PAYMENT_METHOD: Corporate-OB without a card;
            the message is kept and a failed Charge recorded
    """
    cost = credit_cost_for(sender)

    # One retry covers a concurrent first message creating the same thread
    for attempt in range(2):
        try:
            thread = target.thread or _get_or_insert_thread(db, sender.id, target.recipient.id)

            # Rolling back also discards a thread inserted above
            if cost and not user_service.deduct_credits_if_sufficient(db, sender.id, cost):
                db.rollback()
                raise PaymentRequiredError("Insufficient credits", code="INSUFFICIENT_CREDITS")

            now = datetime.now(timezone.utc)
            message = Message(
                id=uuid.uuid4(),
                thread_id=thread.id,
                sender_id=sender.id,
                recipient_id=target.recipient.id,
                content=content,
                created_at=now,
            )
            db.add(message)
            thread.last_message_at = now
            if cost:
                user_service.record_credit_transaction(
                    db, sender.id, -cost, CreditReason.MESSAGE_SENT, reference=str(message.id)
                )
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            if attempt:
                raise
            logger.info("Thread insert raced for users %s/%s, retrying", sender.id, target.recipient.id)
            target = SendTarget(
                recipient=target.recipient,
                thread=find_thread_between(db, sender.id, target.recipient.id),
            )

    db.refresh(message)
    thread_id = message.thread_id

    amount_charged = 0
    missing_payment_method = False
    if sender.role == UserRole.CORPORATE_OB.value:
        amount_charged, missing_payment_method = _charge_corporate_ob(db, sender, message, payment_client)

    notification_service.notify(
        db,
        user_id=target.recipient.id,
        type=NotificationType.MESSAGE,
        title="New Message",
        body=f"{sender.name} sent you a message",
        link=f"/messages/{thread_id}",
    )

    if missing_payment_method:
        raise PaymentRequiredError(
            "No payment method on file for your company. The message was sent but could not be billed.",
            code="NO_PAYMENT_METHOD",
        )

    return SendResult(
        message=message,
        thread_id=thread_id,
        credits_deducted=cost,
        amount_charged=amount_charged,
    )


def _charge_corporate_ob(
    db: Session,
    sender: User,
    message: Message,
    payment_client,
) -> tuple[int, bool]:
    """
    Charge the sender's company for one message.

    Returns (amount_charged, missing_payment_method). The message is never
    rolled back; every outcome leaves a Charge row.
    """
    fee = settings.CORPORATE_OB_MESSAGE_FEE_JPY
    link = (
        db.query(CorporateOb)
        .filter(CorporateOb.user_id == sender.id)
        .order_by(CorporateOb.created_at.asc())
        .first()
    )
    company = link.company if link else None

    charge = Charge(
        message_id=message.id,
        user_id=sender.id,
        company_id=company.id if company else None,
        amount=fee,
        currency=MESSAGE_CURRENCY,
    )

    if not company or not company.stripe_customer_id:
        charge.status = ChargeStatus.FAILED.value
        charge.failure_reason = NO_PAYMENT_METHOD
        db.add(charge)
        db.commit()
        logger.warning("Corporate-OB %s has no payment method; message %s unbilled", sender.id, message.id)
        return 0, True

    try:
        if payment_client is None:
            raise IntegrationError("Payment client unavailable", code="PAYMENT_NOT_CONFIGURED")
        result = payment_client.create_charge(
            company.stripe_customer_id,
            fee,
            MESSAGE_CURRENCY,
            f"CareerBridge message {message.id}",
        )
    except (PaymentProviderError, IntegrationError) as exc:
        logger.error("Charge failed for message %s: %s", message.id, exc)
        charge.status = ChargeStatus.FAILED.value
        charge.failure_reason = str(exc)[:255]
    else:
        charge.provider_charge_id = result.id
        charge.status = result.status

    db.add(charge)
    db.commit()

    charged = fee if charge.status == ChargeStatus.SUCCEEDED.value else 0
    return charged, False
