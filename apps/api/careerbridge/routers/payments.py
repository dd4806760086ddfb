"""
Payments Router - credit checkout, Stripe webhook, billing history and
Corporate-OB card setup.
"""

import logging
from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from careerbridge.core.deps import get_current_user, get_db, get_payment_client, require_csrf_header
from careerbridge.core.rate_limit import limiter
from careerbridge.db.models import User
from careerbridge.schemas.billing import (
    BillingHistory,
    ChargeRead,
    CheckoutRequest,
    CheckoutResponse,
    CreditTransactionRead,
    PaymentMethodRead,
    PaymentMethodRequest,
    PaymentMethodSaved,
    SetupIntentResponse,
    StripeCustomerResponse,
)
from careerbridge.schemas.common import ApiResponse
from careerbridge.services import billing_service, payment_method_service
from careerbridge.services.payment_client import SignatureVerificationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post(
    "/payment/checkout",
    response_model=ApiResponse[CheckoutResponse],
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit("10/minute")
def create_checkout(
    request: Request,
    body: CheckoutRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    payment_client=Depends(get_payment_client),
):
    """Start a credit purchase. Companies pay 15 JPY/credit, others 30 JPY."""
    url = billing_service.create_checkout(
        db, user, body.credits, body.is_recurring, payment_client
    )
    return ApiResponse(data=CheckoutResponse(url=url))


@router.post("/payment/webhook", response_model=ApiResponse[dict])
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    payment_client=Depends(get_payment_client),
):
    """Stripe events; authenticated by the Stripe-Signature header only."""
    signature = request.headers.get("Stripe-Signature")
    if not signature:
        raise HTTPException(status_code=400, detail="No signature")

    payload = await request.body()
    try:
        event = payment_client.construct_event(payload, signature)
    except (SignatureVerificationError, ValueError) as exc:
        logger.warning("Stripe webhook signature verification failed: %s", exc)
        raise HTTPException(status_code=400, detail="Invalid signature")

    credited = billing_service.handle_webhook_event(db, event, payment_client)
    return ApiResponse(data={"received": True, "credited": credited})


@router.get("/billing/history", response_model=ApiResponse[BillingHistory])
def billing_history(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Credit ledger, plus per-message charges for Corporate-OBs."""
    history = billing_service.get_history(db, user)
    return ApiResponse(data=BillingHistory(
        credits=user.credits,
        transactions=[CreditTransactionRead.model_validate(t) for t in history["transactions"]],
        charges=[ChargeRead.model_validate(c) for c in history["charges"]],
    ))


@router.get("/billing/export")
def export_billing(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Company charge history as CSV (Corporate-OB only)."""
    content = billing_service.export_charges_csv(db, user, start_date, end_date)
    filename = f"billing-history-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.csv"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content=content, media_type="text/csv", headers=headers)


# =============================================================================
# Corporate-OB card setup
# =============================================================================

@router.post(
    "/stripe/customer",
    response_model=ApiResponse[StripeCustomerResponse],
    dependencies=[Depends(require_csrf_header)],
)
def create_stripe_customer(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    payment_client=Depends(get_payment_client),
):
    """Create (or return) the Stripe customer billed for the company."""
    company, customer_id = payment_method_service.ensure_customer(db, user, payment_client)
    return ApiResponse(data=StripeCustomerResponse(customer_id=customer_id, company_id=company.id))


@router.post(
    "/stripe/setup-intent",
    response_model=ApiResponse[SetupIntentResponse],
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit("10/minute")
def create_setup_intent(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    payment_client=Depends(get_payment_client),
):
    intent = payment_method_service.create_setup_intent(db, user, payment_client)
    return ApiResponse(data=SetupIntentResponse(
        client_secret=intent["client_secret"],
        setup_intent_id=intent["id"],
    ))


@router.get("/stripe/payment-methods", response_model=ApiResponse[list[PaymentMethodRead]])
def list_payment_methods(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    payment_client=Depends(get_payment_client),
):
    methods = payment_method_service.list_payment_methods(db, user, payment_client)
    return ApiResponse(data=[PaymentMethodRead(**m) for m in methods])


@router.post(
    "/stripe/payment-method",
    response_model=ApiResponse[PaymentMethodSaved],
    dependencies=[Depends(require_csrf_header)],
)
def save_payment_method(
    body: PaymentMethodRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    payment_client=Depends(get_payment_client),
):
    """Attach a card confirmed through a SetupIntent; the first card becomes the default."""
    is_default = payment_method_service.save_payment_method(
        db, user, payment_client, body.payment_method_id
    )
    return ApiResponse(data=PaymentMethodSaved(
        payment_method_id=body.payment_method_id,
        is_default=is_default,
    ))


@router.patch(
    "/stripe/payment-method",
    response_model=ApiResponse[PaymentMethodSaved],
    dependencies=[Depends(require_csrf_header)],
)
def set_default_payment_method(
    body: PaymentMethodRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    payment_client=Depends(get_payment_client),
):
    payment_method_service.set_default_payment_method(
        db, user, payment_client, body.payment_method_id
    )
    return ApiResponse(data=PaymentMethodSaved(
        payment_method_id=body.payment_method_id,
        is_default=True,
    ))


@router.delete(
    "/stripe/payment-method",
    response_model=ApiResponse[dict],
    dependencies=[Depends(require_csrf_header)],
)
def remove_payment_method(
    payment_method_id: str = Query(..., alias="id", min_length=1),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    payment_client=Depends(get_payment_client),
):
    payment_method_service.remove_payment_method(db, user, payment_client, payment_method_id)
    return ApiResponse(data={"deleted": True})
