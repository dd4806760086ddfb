"""
Messages Router - /api/messages endpoints.

Threads are two-party. Every sender except Corporate-OBs pays credits per
message; Corporate-OBs are charged per message through Stripe.
"""

import logging
from typing import Any
from uuid import UUID

import anyio
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from careerbridge.core.deps import (
    get_current_user,
    get_db,
    get_payment_client,
    get_translation_client,
    require_csrf_header,
)
from careerbridge.core.errors import PaymentRequiredError
from careerbridge.db.models import User
from careerbridge.schemas.common import ApiResponse
from careerbridge.schemas.message import (
    MessageCreate,
    MessageRead,
    SendMessageResult,
    ThreadDetail,
    ThreadSummary,
)
from careerbridge.schemas.user import UserSummary
from careerbridge.services import message_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


def _prepare_content(text: str, translator) -> Any:
    """Bilingual {en, ja} body, or the plain text when translation fails."""
    try:
        return anyio.from_thread.run(translator.create_multilingual_content, text)
    except Exception:
        logger.warning("Translation failed, storing plain text", exc_info=True)
        return text


@router.get("", response_model=ApiResponse[list[ThreadSummary]])
def list_threads(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Caller's threads (all threads for admins), most recent first."""
    items = message_service.list_threads(db, user)
    return ApiResponse(data=[
        ThreadSummary(
            id=item["thread"].id,
            participants=[UserSummary.model_validate(u) for u in item["participants"]],
            last_message=(
                MessageRead.model_validate(item["last_message"]) if item["last_message"] else None
            ),
            last_message_at=item["thread"].last_message_at,
            unread_count=item["unread_count"],
        )
        for item in items
    ])


@router.get("/{thread_id}", response_model=ApiResponse[ThreadDetail])
def get_thread(
    thread_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Thread messages in order; marks the caller's incoming messages read."""
    thread, messages = message_service.get_thread_messages(db, user, thread_id)
    return ApiResponse(data=ThreadDetail(
        id=thread.id,
        participant_ids=list(thread.participant_ids),
        messages=[MessageRead.model_validate(m) for m in messages],
    ))


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse[SendMessageResult],
    dependencies=[Depends(require_csrf_header)],
)
def send_message(
    body: MessageCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    payment_client=Depends(get_payment_client),
    translator=Depends(get_translation_client),
):
    """
    Send a message (new thread or reply).

    Errors: 400 bad input, 402 INSUFFICIENT_CREDITS / NO_PAYMENT_METHOD,
    403 USER_BANNED / ALUMNI_CANNOT_INITIATE / STUDENT_CANNOT_INITIATE_CORP_OB,
    404 unknown thread or recipient.
    """
    target = message_service.resolve_send_target(
        db, user, body.content, thread_id=body.thread_id, to_user_id=body.to_user_id
    )

    # Skip the translation call for senders who clearly can't pay;
    # the conditional UPDATE in send_message is what actually enforces it
    cost = message_service.credit_cost_for(user)
    if cost and user.credits < cost:
        raise PaymentRequiredError("Insufficient credits", code="INSUFFICIENT_CREDITS")

    content = _prepare_content(body.content.strip(), translator)
    result = message_service.send_message(db, user, target, content, payment_client)

    return ApiResponse(data=SendMessageResult(
        message=MessageRead.model_validate(result.message),
        thread_id=result.thread_id,
        credits_deducted=result.credits_deducted,
        amount_charged=result.amount_charged,
    ))
