"""
Corporate-OB card setup: Stripe customer, SetupIntent and saved cards.
"""
import pytest

from careerbridge.db.enums import ChargeStatus, UserRole
from careerbridge.db.models import Charge, Company


@pytest.mark.asyncio
async def test_customer_created_once_and_stored(db, client_for, fakes, company, corporate_ob):
    client = client_for(corporate_ob)

    first = await client.post("/api/stripe/customer")
    second = await client.post("/api/stripe/customer")

    assert first.status_code == 200, first.text
    assert first.json()["data"] == {"customer_id": "cus_test_1", "company_id": str(company.id)}
    assert second.json()["data"]["customer_id"] == "cus_test_1"
    assert list(fakes.payment.customers) == ["cus_test_1"]
    customer = fakes.payment.customers["cus_test_1"]
    assert customer["name"] == "Acme KK"
    assert customer["email"] == corporate_ob.email
    assert customer["metadata"] == {"company_id": str(company.id), "corporate_ob_id": str(corporate_ob.id)}
    db.refresh(company)
    assert company.stripe_customer_id == "cus_test_1"


@pytest.mark.asyncio
async def test_existing_customer_is_reused(db, client_for, fakes, company, corporate_ob):
    company.stripe_customer_id = "cus_existing"
    db.commit()

    response = await client_for(corporate_ob).post("/api/stripe/setup-intent")

    assert response.status_code == 200
    assert fakes.payment.customers == {}
    assert fakes.payment.setup_intents == ["cus_existing"]


@pytest.mark.asyncio
async def test_setup_intent_returns_client_secret(db, client_for, fakes, company, corporate_ob):
    response = await client_for(corporate_ob).post("/api/stripe/setup-intent")

    assert response.status_code == 200, response.text
    assert response.json()["data"] == {
        "client_secret": "seti_test_1_secret",
        "setup_intent_id": "seti_test_1",
    }
    assert fakes.payment.setup_intents == ["cus_test_1"]


@pytest.mark.asyncio
async def test_only_corporate_obs_manage_billing(client_for, fakes, student):
    client = client_for(student)

    for response in (
        await client.post("/api/stripe/customer"),
        await client.post("/api/stripe/setup-intent"),
        await client.get("/api/stripe/payment-methods"),
    ):
        assert response.status_code == 403
    assert fakes.payment.customers == {}


@pytest.mark.asyncio
async def test_corporate_ob_without_company(client_for, fakes, user_factory):
    unassigned = user_factory(UserRole.CORPORATE_OB)

    response = await client_for(unassigned).post("/api/stripe/customer")

    assert response.status_code == 404
    assert fakes.payment.customers == {}


@pytest.mark.asyncio
async def test_setup_requires_csrf_header(client_for, corporate_ob):
    client = client_for(corporate_ob)
    client.headers.pop("X-Requested-With")

    response = await client.post("/api/stripe/customer")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_no_cards_before_customer(client_for, fakes, corporate_ob):
    response = await client_for(corporate_ob).get("/api/stripe/payment-methods")

    assert response.status_code == 200
    assert response.json()["data"] == []
    assert fakes.payment.customers == {}


@pytest.mark.asyncio
async def test_first_saved_card_becomes_default(client_for, fakes, company, corporate_ob):
    client = client_for(corporate_ob)

    first = await client.post("/api/stripe/payment-method", json={"payment_method_id": "pm_1"})
    second = await client.post("/api/stripe/payment-method", json={"payment_method_id": "pm_2"})

    assert first.json()["data"] == {"payment_method_id": "pm_1", "is_default": True}
    assert second.json()["data"] == {"payment_method_id": "pm_2", "is_default": False}

    listed = (await client.get("/api/stripe/payment-methods")).json()["data"]
    assert [(m["id"], m["is_default"]) for m in listed] == [("pm_1", True), ("pm_2", False)]
    assert listed[0]["last4"] == "4242"


@pytest.mark.asyncio
async def test_save_card_requires_id(client_for, corporate_ob):
    response = await client_for(corporate_ob).post("/api/stripe/payment-method", json={"payment_method_id": ""})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_change_default_card(client_for, fakes, company, corporate_ob):
    client = client_for(corporate_ob)
    await client.post("/api/stripe/payment-method", json={"payment_method_id": "pm_1"})
    await client.post("/api/stripe/payment-method", json={"payment_method_id": "pm_2"})

    response = await client.patch("/api/stripe/payment-method", json={"payment_method_id": "pm_2"})

    assert response.status_code == 200
    assert fakes.payment.defaults["cus_test_1"] == "pm_2"


@pytest.mark.asyncio
async def test_change_default_without_customer(client_for, corporate_ob):
    response = await client_for(corporate_ob).patch(
        "/api/stripe/payment-method", json={"payment_method_id": "pm_1"}
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_default_card_cannot_be_removed(client_for, fakes, company, corporate_ob):
    client = client_for(corporate_ob)
    await client.post("/api/stripe/payment-method", json={"payment_method_id": "pm_1"})
    await client.post("/api/stripe/payment-method", json={"payment_method_id": "pm_2"})

    blocked = await client.delete("/api/stripe/payment-method", params={"id": "pm_1"})
    removed = await client.delete("/api/stripe/payment-method", params={"id": "pm_2"})

    assert blocked.status_code == 400
    assert blocked.json()["code"] == "DEFAULT_PAYMENT_METHOD"
    assert removed.status_code == 200
    assert fakes.payment.cards["cus_test_1"] == ["pm_1"]


@pytest.mark.asyncio
async def test_remove_unknown_card(client_for, fakes, company, corporate_ob):
    client = client_for(corporate_ob)
    await client.post("/api/stripe/payment-method", json={"payment_method_id": "pm_1"})

    response = await client.delete("/api/stripe/payment-method", params={"id": "pm_other"})

    assert response.status_code == 404
    assert fakes.payment.cards["cus_test_1"] == ["pm_1"]


@pytest.mark.asyncio
async def test_messages_billed_after_card_setup(db, client_for, fakes, company, corporate_ob, student):
    client = client_for(corporate_ob)
    await client.post("/api/stripe/setup-intent")
    await client.post("/api/stripe/payment-method", json={"payment_method_id": "pm_1"})

    response = await client.post("/api/messages", json={"content": "Hi", "to_user_id": str(student.id)})

    assert response.status_code == 201, response.text
    assert response.json()["data"]["amount_charged"] == 500
    assert fakes.payment.charges[0]["customer_id"] == "cus_test_1"
    assert db.query(Charge).one().status == ChargeStatus.SUCCEEDED.value
    assert db.query(Company).filter(Company.id == company.id).one().stripe_customer_id == "cus_test_1"
