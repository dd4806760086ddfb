"""
Messaging tests: initiation rules, credit billing, Corporate-OB charges,
translation fallback, thread listing and read tracking.
"""
import uuid

import pytest

from careerbridge.db.enums import ChargeStatus, CreditReason, NotificationType, UserRole
from careerbridge.db.models import Charge, CreditTransaction, Message, Notification, Thread
from careerbridge.db.session import SessionLocal
from careerbridge.services import message_service, user_service
from careerbridge.services.message_service import SendTarget, ordered_pair


def _messages(db):
    return db.query(Message).all()


@pytest.mark.asyncio
async def test_student_message_deducts_credits_and_notifies(db, client_for, student, obog):
    client = client_for(student)

    response = await client.post("/api/messages", json={"content": "Hello!", "to_user_id": str(obog.id)})

    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert data["credits_deducted"] == 10
    assert data["amount_charged"] == 0
    assert data["message"]["content"] == {"en": "Hello!", "ja": "[ja] Hello!"}

    db.refresh(student)
    assert student.credits == 5

    ledger = db.query(CreditTransaction).filter(CreditTransaction.user_id == student.id).all()
    assert [(t.delta, t.reason) for t in ledger] == [(-10, CreditReason.MESSAGE_SENT.value)]

    notifications = db.query(Notification).filter(Notification.user_id == obog.id).all()
    assert len(notifications) == 1
    assert notifications[0].type == NotificationType.MESSAGE.value
    assert notifications[0].title == "New Message"
    assert notifications[0].body == "Sakura Student sent you a message"
    assert notifications[0].link == f"/messages/{data['thread_id']}"


@pytest.mark.asyncio
async def test_insufficient_credits_writes_nothing(db, client_for, user_factory, obog):
    poor = user_factory(UserRole.STUDENT, credits=5)
    client = client_for(poor)

    response = await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(obog.id)})

    assert response.status_code == 402
    assert response.json()["code"] == "INSUFFICIENT_CREDITS"
    db.refresh(poor)
    assert poor.credits == 5
    assert _messages(db) == []
    assert db.query(Thread).count() == 0
    assert db.query(Notification).count() == 0


def test_deduct_credits_is_conditional(db, user_factory):
    user = user_factory(UserRole.STUDENT, credits=15)

    assert user_service.deduct_credits_if_sufficient(db, user.id, 10) is True
    assert user_service.deduct_credits_if_sufficient(db, user.id, 10) is False
    db.commit()

    db.refresh(user)
    assert user.credits == 5


@pytest.mark.asyncio
async def test_alumni_cannot_initiate(db, client_for, student, obog):
    client = client_for(obog)

    response = await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(student.id)})

    assert response.status_code == 403
    assert response.json()["code"] == "ALUMNI_CANNOT_INITIATE"
    assert _messages(db) == []


@pytest.mark.asyncio
async def test_alumni_can_reply_in_existing_thread(db, client_for, make_thread, student, obog):
    thread = make_thread(student, obog)
    client = client_for(obog)

    response = await client.post("/api/messages", json={"content": "Happy to help", "thread_id": str(thread.id)})

    assert response.status_code == 201, response.text
    assert response.json()["data"]["thread_id"] == str(thread.id)
    db.refresh(obog)
    assert obog.credits == 40


@pytest.mark.asyncio
async def test_student_cannot_initiate_with_corporate_ob(db, client_for, student, corporate_ob):
    client = client_for(student)

    response = await client.post(
        "/api/messages", json={"content": "Hi", "to_user_id": str(corporate_ob.id)}
    )

    assert response.status_code == 403
    assert response.json()["code"] == "STUDENT_CANNOT_INITIATE_CORP_OB"
    db.refresh(student)
    assert student.credits == 15


@pytest.mark.asyncio
async def test_student_can_reply_to_corporate_ob_thread(db, client_for, make_thread, student, corporate_ob):
    thread = make_thread(student, corporate_ob)
    client = client_for(student)

    response = await client.post("/api/messages", json={"content": "Thanks", "thread_id": str(thread.id)})

    assert response.status_code == 201, response.text


@pytest.mark.asyncio
@pytest.mark.parametrize("content, with_recipient", [("   ", True), ("Hi", False)])
async def test_send_rejects_bad_input(db, client_for, student, obog, content, with_recipient):
    payload = {"content": content}
    if with_recipient:
        payload["to_user_id"] = str(obog.id)
    client = client_for(student)

    response = await client.post("/api/messages", json=payload)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_banned_user_cannot_send(db, client_for, user_factory, obog):
    banned = user_factory(UserRole.STUDENT, credits=100, is_banned=True, strikes=2)
    client = client_for(banned)

    response = await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(obog.id)})

    assert response.status_code == 403
    assert response.json()["code"] == "USER_BANNED"


@pytest.mark.asyncio
async def test_reply_requires_participation(db, client_for, make_thread, student, obog, user_factory):
    thread = make_thread(student, obog)
    outsider = user_factory(UserRole.STUDENT, credits=100)
    client = client_for(outsider)

    response = await client.post("/api/messages", json={"content": "Hi", "thread_id": str(thread.id)})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_thread_and_recipient(db, client_for, student):
    client = client_for(student)

    missing_thread = await client.post(
        "/api/messages", json={"content": "Hi", "thread_id": str(uuid.uuid4())}
    )
    missing_user = await client.post(
        "/api/messages", json={"content": "Hi", "to_user_id": str(uuid.uuid4())}
    )

    assert missing_thread.status_code == 404
    assert missing_user.status_code == 404


@pytest.mark.asyncio
async def test_cannot_message_self(db, client_for, student):
    client = client_for(student)

    response = await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(student.id)})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_second_message_reuses_thread(db, client_for, user_factory, obog):
    sender = user_factory(UserRole.STUDENT, credits=100)
    client = client_for(sender)

    first = await client.post("/api/messages", json={"content": "One", "to_user_id": str(obog.id)})
    second = await client.post("/api/messages", json={"content": "Two", "to_user_id": str(obog.id)})

    assert first.status_code == second.status_code == 201
    assert first.json()["data"]["thread_id"] == second.json()["data"]["thread_id"]
    assert db.query(Thread).count() == 1
    db.refresh(sender)
    assert sender.credits == 80


@pytest.mark.asyncio
async def test_translation_failure_stores_plain_text(db, client_for, fakes, student, obog):
    fakes.translation.fail = True
    client = client_for(student)

    response = await client.post("/api/messages", json={"content": "  Hello  ", "to_user_id": str(obog.id)})

    assert response.status_code == 201, response.text
    assert response.json()["data"]["message"]["content"] == "Hello"
    assert _messages(db)[0].content == "Hello"


# =============================================================================
# Corporate-OB billing
# =============================================================================

@pytest.mark.asyncio
async def test_corporate_ob_charged_per_message(db, client_for, fakes, company, corporate_ob, student):
    company.stripe_customer_id = "cus_123"
    db.commit()
    client = client_for(corporate_ob)

    response = await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(student.id)})

    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert data["credits_deducted"] == 0
    assert data["amount_charged"] == 500
    assert fakes.payment.charges[0]["customer_id"] == "cus_123"
    assert fakes.payment.charges[0]["amount"] == 500

    charge = db.query(Charge).one()
    assert charge.status == ChargeStatus.SUCCEEDED.value
    assert charge.provider_charge_id == "pi_test_1"
    assert charge.company_id == company.id
    assert db.query(CreditTransaction).count() == 0


@pytest.mark.asyncio
async def test_corporate_ob_without_payment_method(db, client_for, fakes, corporate_ob, student):
    client = client_for(corporate_ob)

    response = await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(student.id)})

    assert response.status_code == 402
    assert response.json()["code"] == "NO_PAYMENT_METHOD"
    # Message kept, charge recorded as failed
    assert len(_messages(db)) == 1
    charge = db.query(Charge).one()
    assert charge.status == ChargeStatus.FAILED.value
    assert charge.failure_reason == "no_payment_method"
    assert fakes.payment.charges == []
    assert db.query(Notification).filter(Notification.user_id == student.id).count() == 1


@pytest.mark.asyncio
async def test_corporate_ob_provider_failure_keeps_message(db, client_for, fakes, company, corporate_ob, student):
    company.stripe_customer_id = "cus_declined"
    db.commit()
    fakes.payment.fail_charges = True
    client = client_for(corporate_ob)

    response = await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(student.id)})

    assert response.status_code == 201, response.text
    assert response.json()["data"]["amount_charged"] == 0
    charge = db.query(Charge).one()
    assert charge.status == ChargeStatus.FAILED.value
    assert "declined" in charge.failure_reason
    assert len(_messages(db)) == 1


# =============================================================================
# Listing and read tracking
# =============================================================================

@pytest.mark.asyncio
async def test_list_threads_with_unread_counts(db, client_for, student, obog):
    sender = client_for(student)
    await sender.post("/api/messages", json={"content": "Hi", "to_user_id": str(obog.id)})

    reader = client_for(obog)
    listing = await reader.get("/api/messages")

    assert listing.status_code == 200
    threads = listing.json()["data"]
    assert len(threads) == 1
    assert threads[0]["unread_count"] == 1
    assert threads[0]["participants"][0]["id"] == str(student.id)
    assert threads[0]["last_message"]["sender_id"] == str(student.id)

    detail = await reader.get(f"/api/messages/{threads[0]['id']}")
    assert detail.status_code == 200
    assert len(detail.json()["data"]["messages"]) == 1
    assert detail.json()["data"]["messages"][0]["read_at"] is not None

    listing = await reader.get("/api/messages")
    assert listing.json()["data"][0]["unread_count"] == 0


@pytest.mark.asyncio
async def test_thread_detail_forbidden_for_outsider(db, client_for, make_thread, student, obog, user_factory):
    thread = make_thread(student, obog)
    outsider = user_factory(UserRole.COMPANY)

    response = await client_for(outsider).get(f"/api/messages/{thread.id}")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_views_threads_without_marking_read(db, client_for, student, obog, admin):
    await client_for(student).post("/api/messages", json={"content": "Hi", "to_user_id": str(obog.id)})
    client = client_for(admin)

    listing = await client.get("/api/messages")
    assert len(listing.json()["data"]) == 1
    assert {p["id"] for p in listing.json()["data"][0]["participants"]} == {str(student.id), str(obog.id)}

    thread_id = listing.json()["data"][0]["id"]
    detail = await client.get(f"/api/messages/{thread_id}")
    assert detail.status_code == 200
    assert detail.json()["data"]["messages"][0]["read_at"] is None


@pytest.mark.asyncio
async def test_send_requires_csrf_header(db, client_for, student, obog):
    client = client_for(student)
    client.headers.pop("X-Requested-With")

    response = await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(obog.id)})

    assert response.status_code == 403


def test_thread_insert_race_reuses_winner_and_charges_once(db, monkeypatch, student, obog):
    first, second = ordered_pair(student.id, obog.id)
    real_find = message_service.find_thread_between
    lookups = []

    def find_after_competing_insert(session, user_a, user_b):
        lookups.append((user_a, user_b))
        if len(lookups) > 1:
            return real_find(session, user_a, user_b)
        # The recipient's first message creates the thread between our lookup and our insert
        other = SessionLocal()
        try:
            other.add(Thread(participant_a_id=first, participant_b_id=second))
            other.commit()
        finally:
            other.close()
        return None

    monkeypatch.setattr(message_service, "find_thread_between", find_after_competing_insert)

    result = message_service.send_message(db, student, SendTarget(recipient=obog, thread=None), "Hello")

    threads = db.query(Thread).all()
    assert len(threads) == 1
    assert result.thread_id == threads[0].id
    assert result.credits_deducted == 10
    assert len(lookups) == 2

    db.refresh(student)
    assert student.credits == 5
    ledger = db.query(CreditTransaction).filter(CreditTransaction.user_id == student.id).all()
    assert [t.delta for t in ledger] == [-10]
    assert db.query(Message).one().thread_id == threads[0].id
