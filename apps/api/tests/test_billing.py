"""
Billing tests: checkout pricing, Stripe webhook crediting and billing history.
"""
import csv
import io
import json
from datetime import datetime, timezone

import pytest

from careerbridge.db.enums import ChargeStatus, CreditReason, UserRole
from careerbridge.db.models import Charge, CreditTransaction, Message, ProcessedWebhookEvent
from careerbridge.db.session import SessionLocal
from careerbridge.services import billing_service


def _event(event_id, event_type, obj):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


async def _post_webhook(client, event, signature):
    return await client.post(
        "/api/payment/webhook",
        content=json.dumps(event),
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


# =============================================================================
# Checkout
# =============================================================================

@pytest.mark.asyncio
async def test_student_checkout_pricing(client_for, fakes, student):
    response = await client_for(student).post("/api/payment/checkout", json={"credits": 20})

    assert response.status_code == 200, response.text
    assert response.json()["data"]["url"] == "https://checkout.stripe.test/c/1"
    checkout = fakes.payment.checkouts[0]
    assert checkout["amount"] == 600
    assert checkout["credits"] == 20
    assert checkout["recurring"] is False
    assert checkout["customer_email"] == student.email
    assert checkout["metadata"] == {"user_id": str(student.id), "credits": "20", "user_role": "student"}
    assert checkout["success_url"].startswith("http://localhost:3000/credits?success=true")


@pytest.mark.asyncio
async def test_company_checkout_pricing_and_recurring(client_for, fakes, company_user):
    response = await client_for(company_user).post(
        "/api/payment/checkout", json={"credits": 20, "is_recurring": True}
    )

    assert response.status_code == 200
    assert fakes.payment.checkouts[0]["amount"] == 300
    assert fakes.payment.checkouts[0]["recurring"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize("credits", [0, -5, 10_001])
async def test_checkout_credit_bounds(client_for, fakes, student, credits):
    response = await client_for(student).post("/api/payment/checkout", json={"credits": credits})

    assert response.status_code == 400
    assert fakes.payment.checkouts == []


@pytest.mark.asyncio
async def test_checkout_requires_session(client_for):
    response = await client_for(None).post("/api/payment/checkout", json={"credits": 5})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_checkout_is_rate_limited(client_for, student):
    client = client_for(student)

    statuses = [
        (await client.post("/api/payment/checkout", json={"credits": 1})).status_code
        for _ in range(11)
    ]

    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429


# =============================================================================
# Webhook
# =============================================================================

@pytest.mark.asyncio
async def test_webhook_requires_signature(client_for):
    response = await client_for(None).post("/api/payment/webhook", content=b"{}")

    assert response.status_code == 400
    assert response.json()["error"] == "No signature"


@pytest.mark.asyncio
async def test_webhook_rejects_invalid_signature(db, client_for, student):
    event = _event("evt_bad", "checkout.session.completed", {"metadata": {"user_id": str(student.id), "credits": "50"}})

    response = await _post_webhook(client_for(None), event, "t=1,v1=forged")

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid signature"
    db.refresh(student)
    assert student.credits == 15


@pytest.mark.asyncio
async def test_checkout_completed_adds_credits_once(db, client_for, student, stripe_signature):
    event = _event(
        "evt_checkout_1",
        "checkout.session.completed",
        {"metadata": {"user_id": str(student.id), "credits": "50", "user_role": "student"}},
    )
    client = client_for(None)

    first = await _post_webhook(client, event, stripe_signature)
    replay = await _post_webhook(client, event, stripe_signature)

    assert first.status_code == 200, first.text
    assert first.json()["data"] == {"received": True, "credited": True}
    assert replay.json()["data"] == {"received": True, "credited": False}

    db.refresh(student)
    assert student.credits == 65
    ledger = db.query(CreditTransaction).filter(CreditTransaction.user_id == student.id).one()
    assert ledger.delta == 50
    assert ledger.reason == CreditReason.PURCHASE.value
    assert ledger.reference == "evt_checkout_1"


def test_same_event_from_two_sessions_credits_once(db, fakes, student):
    event = _event(
        "evt_checkout_dup",
        "checkout.session.completed",
        {"metadata": {"user_id": str(student.id), "credits": "50"}},
    )

    other = SessionLocal()
    try:
        assert billing_service.handle_webhook_event(other, event, fakes.payment) is True
    finally:
        other.close()
    assert billing_service.handle_webhook_event(db, event, fakes.payment) is False

    db.refresh(student)
    assert student.credits == 65
    assert db.query(CreditTransaction).filter(CreditTransaction.user_id == student.id).count() == 1
    assert db.query(ProcessedWebhookEvent).one().event_id == "evt_checkout_dup"


@pytest.mark.asyncio
async def test_renewal_invoice_uses_subscription_metadata(db, client_for, fakes, company_user, stripe_signature):
    fakes.payment.subscription_metadata["sub_123"] = {"user_id": str(company_user.id), "credits": "100"}
    event = _event(
        "evt_invoice_2",
        "invoice.payment_succeeded",
        {"subscription": "sub_123", "billing_reason": "subscription_cycle", "metadata": {}},
    )

    response = await _post_webhook(client_for(None), event, stripe_signature)

    assert response.json()["data"]["credited"] is True
    db.refresh(company_user)
    assert company_user.credits == 100


@pytest.mark.asyncio
async def test_first_subscription_invoice_is_skipped(db, client_for, fakes, company_user, stripe_signature):
    fakes.payment.subscription_metadata["sub_123"] = {"user_id": str(company_user.id), "credits": "100"}
    event = _event(
        "evt_invoice_1",
        "invoice.payment_succeeded",
        {"subscription": "sub_123", "billing_reason": "subscription_create"},
    )

    response = await _post_webhook(client_for(None), event, stripe_signature)

    assert response.status_code == 200
    assert response.json()["data"]["credited"] is False
    db.refresh(company_user)
    assert company_user.credits == 0


@pytest.mark.asyncio
async def test_unrelated_events_are_acknowledged(client_for, stripe_signature):
    event = _event("evt_other", "customer.created", {"id": "cus_1"})

    response = await _post_webhook(client_for(None), event, stripe_signature)

    assert response.status_code == 200
    assert response.json()["data"] == {"received": True, "credited": False}


@pytest.mark.asyncio
async def test_webhook_with_unknown_user_credits_nothing(db, client_for, stripe_signature):
    event = _event(
        "evt_orphan",
        "checkout.session.completed",
        {"metadata": {"user_id": "00000000-0000-0000-0000-000000000000", "credits": "10"}},
    )

    response = await _post_webhook(client_for(None), event, stripe_signature)

    assert response.json()["data"]["credited"] is False
    assert db.query(CreditTransaction).count() == 0


# =============================================================================
# History
# =============================================================================

@pytest.mark.asyncio
async def test_history_lists_ledger(client_for, student, obog):
    client = client_for(student)
    await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(obog.id)})

    response = await client.get("/api/billing/history")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["credits"] == 5
    assert [(t["delta"], t["reason"]) for t in data["transactions"]] == [(-10, "message_sent")]
    assert data["charges"] == []


@pytest.mark.asyncio
async def test_corporate_ob_history_includes_charges(db, client_for, user_factory, make_thread, corporate_ob, company):
    student = user_factory(UserRole.STUDENT)
    thread = make_thread(student, corporate_ob)
    message = Message(thread_id=thread.id, sender_id=corporate_ob.id, recipient_id=student.id, content="Hi")
    db.add(message)
    db.flush()
    db.add(Charge(
        message_id=message.id,
        user_id=corporate_ob.id,
        company_id=company.id,
        amount=500,
        currency="jpy",
        provider_charge_id="pi_1",
        status=ChargeStatus.SUCCEEDED.value,
    ))
    db.commit()

    response = await client_for(corporate_ob).get("/api/billing/history")

    charges = response.json()["data"]["charges"]
    assert len(charges) == 1
    assert charges[0]["amount"] == 500
    assert charges[0]["status"] == "succeeded"


# =============================================================================
# Export
# =============================================================================

def _charge(db, thread, sender, recipient, company, created_at, **fields):
    message = Message(thread_id=thread.id, sender_id=sender.id, recipient_id=recipient.id, content="Hi")
    db.add(message)
    db.flush()
    charge = Charge(
        message_id=message.id,
        user_id=sender.id,
        company_id=company.id,
        amount=500,
        currency="jpy",
        created_at=created_at,
        **fields,
    )
    db.add(charge)
    db.commit()
    return charge


def _rows(response):
    return list(csv.reader(io.StringIO(response.text)))


@pytest.mark.asyncio
async def test_export_lists_company_charges_newest_first(db, client_for, user_factory, make_thread, corporate_ob, company):
    student = user_factory(UserRole.STUDENT, name="=HYPERLINK(\"x\")")
    thread = make_thread(student, corporate_ob)
    older = _charge(
        db, thread, corporate_ob, student, company, datetime(2026, 3, 1, tzinfo=timezone.utc),
        status=ChargeStatus.SUCCEEDED.value, provider_charge_id="pi_1",
    )
    newer = _charge(
        db, thread, corporate_ob, student, company, datetime(2026, 3, 5, tzinfo=timezone.utc),
        status=ChargeStatus.FAILED.value, failure_reason="no_payment_method",
    )

    response = await client_for(corporate_ob).get("/api/billing/export")

    assert response.status_code == 200, response.text
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"].startswith('attachment; filename="billing-history-')
    rows = _rows(response)
    assert rows[0] == [
        "Date",
        "Amount (JPY)",
        "Status",
        "Recipient Name",
        "Recipient Email",
        "Stripe Payment Intent ID",
        "Charge ID",
    ]
    assert [row[6] for row in rows[1:]] == [str(newer.id), str(older.id)]
    assert rows[2][1:] == ["500", "succeeded", "'=HYPERLINK(\"x\")", student.email, "pi_1", str(older.id)]
    assert rows[1][5] == ""


@pytest.mark.asyncio
async def test_export_date_range_is_inclusive(db, client_for, user_factory, make_thread, corporate_ob, company):
    student = user_factory(UserRole.STUDENT)
    thread = make_thread(student, corporate_ob)
    for day in (1, 5, 9):
        _charge(
            db, thread, corporate_ob, student, company, datetime(2026, 3, day, 12, tzinfo=timezone.utc),
            status=ChargeStatus.SUCCEEDED.value, provider_charge_id=f"pi_{day}",
        )

    response = await client_for(corporate_ob).get(
        "/api/billing/export", params={"start_date": "2026-03-05", "end_date": "2026-03-09"}
    )

    assert [row[5] for row in _rows(response)[1:]] == ["pi_9", "pi_5"]


@pytest.mark.asyncio
async def test_export_rejects_inverted_range(client_for, corporate_ob):
    response = await client_for(corporate_ob).get(
        "/api/billing/export", params={"start_date": "2026-03-09", "end_date": "2026-03-01"}
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_export_is_for_corporate_obs(client_for, student):
    response = await client_for(student).get("/api/billing/export")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_export_without_company(client_for, user_factory):
    response = await client_for(user_factory(UserRole.CORPORATE_OB)).get("/api/billing/export")

    assert response.status_code == 404
