"""Pydantic schemas for payments and billing history."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CheckoutRequest(BaseModel):
    credits: int = Field(..., ge=1, le=10_000)
    is_recurring: bool = False


class CheckoutResponse(BaseModel):
    url: str


class CreditTransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    delta: int
    reason: str
    reference: str | None
    created_at: datetime


class ChargeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    message_id: UUID
    company_id: UUID | None
    amount: int
    currency: str
    provider_charge_id: str | None
    status: str
    failure_reason: str | None
    created_at: datetime


class BillingHistory(BaseModel):
    credits: int
    transactions: list[CreditTransactionRead]
    charges: list[ChargeRead]


class StripeCustomerResponse(BaseModel):
    customer_id: str
    company_id: UUID


class SetupIntentResponse(BaseModel):
    client_secret: str
    setup_intent_id: str


class PaymentMethodRead(BaseModel):
    id: str
    brand: str | None
    last4: str | None
    exp_month: int | None
    exp_year: int | None
    is_default: bool


class PaymentMethodRequest(BaseModel):
    payment_method_id: str = Field(..., min_length=1, max_length=255)


class PaymentMethodSaved(BaseModel):
    payment_method_id: str
    is_default: bool
