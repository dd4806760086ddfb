"""
Stripe integration.

Wraps the provider operations the API needs:
1. Off-session charges for Corporate-OB messages (PaymentIntent)
2. Checkout sessions for credit purchases (one-time or monthly)
3. Webhook signature verification
4. Company billing setup: customers, SetupIntents and saved cards

Every call passes the API key explicitly so tests and multiple instances
never share module-level Stripe state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import stripe

from careerbridge.core.errors import IntegrationError, ValidationError

logger = logging.getLogger(__name__)

PaymentProviderError = stripe.StripeError
SignatureVerificationError = stripe.SignatureVerificationError


@dataclass(frozen=True)
class ChargeResult:
    id: str
    status: str


class StripePaymentClient:
    def __init__(self, secret_key: str, webhook_secret: str):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def _check_configured(self) -> None:
        if not self.is_configured():
            raise IntegrationError("Stripe is not configured", code="PAYMENT_NOT_CONFIGURED")

    def create_charge(
        self,
        customer_id: str,
        amount: int,
        currency: str,
        description: str,
    ) -> ChargeResult:
        """
        Charge the customer's default payment method off-session.

        Raises stripe.StripeError on provider failure (declines included).
        """
        self._check_configured()
        payment_method = self.get_default_payment_method(customer_id)

        intent = stripe.PaymentIntent.create(
            api_key=self.secret_key,
            amount=amount,
            currency=currency,
            customer=customer_id,
            payment_method=payment_method,
            description=description,
            confirm=True,
            off_session=True,
        )
        logger.info("Created PaymentIntent %s status=%s", intent.id, intent.status)
        return ChargeResult(id=intent.id, status=intent.status)

    def create_checkout_session(
        self,
        *,
        amount: int,
        credits: int,
        customer_email: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        recurring: bool = False,
    ) -> str:
        """Create a Checkout session for a credit pack and return its URL."""
        self._check_configured()
        product_name = f"{credits} Credits (Monthly)" if recurring else f"{credits} Credits"

        if recurring:
            price = stripe.Price.create(
                api_key=self.secret_key,
                currency="jpy",
                unit_amount=amount,
                recurring={"interval": "month"},
                product_data={"name": product_name},
            )
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                mode="subscription",
                payment_method_types=["card"],
                line_items=[{"price": price.id, "quantity": 1}],
                customer_email=customer_email,
                metadata=metadata,
                subscription_data={"metadata": metadata},
                success_url=success_url,
                cancel_url=cancel_url,
            )
        else:
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": "jpy",
                            "product_data": {"name": product_name},
                            "unit_amount": amount,
                        },
                        "quantity": 1,
                    }
                ],
                customer_email=customer_email,
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url,
            )

        logger.info("Created checkout session %s (recurring=%s)", session.id, recurring)
        return session.url

    def construct_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify the Stripe-Signature header and parse the event.

        Raises SignatureVerificationError or ValueError on bad input.
        """
        if not self.webhook_secret:
            raise IntegrationError("Stripe webhook secret not configured", code="PAYMENT_NOT_CONFIGURED")
        event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        return event.to_dict()

    def get_subscription_metadata(self, subscription_id: str) -> dict[str, str]:
        self._check_configured()
        subscription = stripe.Subscription.retrieve(subscription_id, api_key=self.secret_key)
        return dict(subscription.to_dict().get("metadata") or {})

    # =========================================================================
    # Company billing setup
    # =========================================================================

    def get_default_payment_method(self, customer_id: str) -> str | None:
        customer = stripe.Customer.retrieve(customer_id, api_key=self.secret_key)
        invoice_settings = customer.to_dict().get("invoice_settings") or {}
        default = invoice_settings.get("default_payment_method")
        if isinstance(default, dict):
            return default.get("id")
        return default

    def create_customer(self, *, email: str, name: str, metadata: dict[str, str]) -> str:
        self._check_configured()
        try:
            customer = stripe.Customer.create(
                api_key=self.secret_key,
                email=email,
                name=name,
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            raise _setup_error("customer creation", exc) from exc
        logger.info("Created Stripe customer %s", customer.id)
        return customer.id

    def create_setup_intent(self, customer_id: str) -> dict[str, str]:
        """SetupIntent for saving a card; returns id and client_secret."""
        self._check_configured()
        try:
            intent = stripe.SetupIntent.create(
                api_key=self.secret_key,
                customer=customer_id,
                payment_method_types=["card"],
            )
        except stripe.StripeError as exc:
            raise _setup_error("SetupIntent creation", exc) from exc
        return {"id": intent.id, "client_secret": intent.client_secret}

    def list_payment_methods(self, customer_id: str) -> list[dict[str, Any]]:
        """Saved cards with the default flagged."""
        self._check_configured()
        try:
            methods = stripe.PaymentMethod.list(
                api_key=self.secret_key,
                customer=customer_id,
                type="card",
            )
            default = self.get_default_payment_method(customer_id)
        except stripe.StripeError as exc:
            raise _setup_error("payment method listing", exc) from exc

        cards = []
        for method in methods.to_dict().get("data", []):
            card = method.get("card") or {}
            cards.append({
                "id": method["id"],
                "brand": card.get("brand"),
                "last4": card.get("last4"),
                "exp_month": card.get("exp_month"),
                "exp_year": card.get("exp_year"),
                "is_default": method["id"] == default,
            })
        return cards

    def attach_payment_method(self, payment_method_id: str, customer_id: str) -> None:
        self._check_configured()
        try:
            stripe.PaymentMethod.attach(payment_method_id, api_key=self.secret_key, customer=customer_id)
        except stripe.StripeError as exc:
            raise _setup_error("payment method attach", exc) from exc

    def set_default_payment_method(self, customer_id: str, payment_method_id: str) -> None:
        self._check_configured()
        try:
            stripe.Customer.modify(
                customer_id,
                api_key=self.secret_key,
                invoice_settings={"default_payment_method": payment_method_id},
            )
        except stripe.StripeError as exc:
            raise _setup_error("default payment method update", exc) from exc

    def detach_payment_method(self, payment_method_id: str) -> None:
        self._check_configured()
        try:
            stripe.PaymentMethod.detach(payment_method_id, api_key=self.secret_key)
        except stripe.StripeError as exc:
            raise _setup_error("payment method detach", exc) from exc


def _setup_error(action: str, exc: stripe.StripeError) -> Exception:
    """Map a provider error: rejected input is the caller's fault, the rest is upstream."""
    if isinstance(exc, stripe.InvalidRequestError):
        return ValidationError(exc.user_message or f"Stripe rejected the {action}", code="PAYMENT_INVALID_REQUEST")
    logger.error("Stripe %s failed: %s", action, exc)
    return IntegrationError(f"Stripe {action} failed", code="PAYMENT_PROVIDER_ERROR")
