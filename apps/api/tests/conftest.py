"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, tables created/dropped per test
- User factory and one user per role
- client_for(user): HTTPX AsyncClient with a session cookie and CSRF header
- Fake payment / translation / storage / email clients wired through
  app.dependency_overrides
"""
import json
import os
import uuid
from dataclasses import dataclass, field
from typing import AsyncGenerator, Callable, Generator

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret-with-enough-length-for-hs256"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["SENTRY_DSN"] = ""

import pytest
import stripe
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from careerbridge.core.deps import (
    COOKIE_NAME,
    get_db,
    get_email_sender,
    get_payment_client,
    get_storage_client,
    get_translation_client,
)
from careerbridge.core.errors import IntegrationError
from careerbridge.core.rate_limit import limiter
from careerbridge.core.security import create_session_token
from careerbridge.db.base import Base
from careerbridge.db.enums import ComplianceStatus, UserRole
from careerbridge.db.models import Company, CorporateOb, StudentProfile, Thread, User
from careerbridge.db.session import SessionLocal, engine
from careerbridge.main import app
from careerbridge.services.message_service import ordered_pair
from careerbridge.services.payment_client import ChargeResult

VALID_SIGNATURE = "t=1,v1=valid"


# =============================================================================
# Fake external clients
# =============================================================================

class FakePaymentClient:
    def __init__(self):
        self.charges: list[dict] = []
        self.checkouts: list[dict] = []
        self.charge_status = "succeeded"
        self.fail_charges = False
        self.subscription_metadata: dict[str, dict] = {}
        self.customers: dict[str, dict] = {}
        self.cards: dict[str, list[str]] = {}
        self.defaults: dict[str, str] = {}
        self.setup_intents: list[str] = []

    def is_configured(self) -> bool:
        return True

    def create_charge(self, customer_id, amount, currency, description) -> ChargeResult:
        if self.fail_charges:
            raise stripe.CardError("Your card was declined.", param=None, code="card_declined")
        self.charges.append({
            "customer_id": customer_id,
            "amount": amount,
            "currency": currency,
            "description": description,
        })
        return ChargeResult(id=f"pi_test_{len(self.charges)}", status=self.charge_status)

    def create_checkout_session(self, **kwargs) -> str:
        self.checkouts.append(kwargs)
        return f"https://checkout.stripe.test/c/{len(self.checkouts)}"

    def construct_event(self, payload: bytes, signature: str) -> dict:
        if signature != VALID_SIGNATURE:
            raise stripe.SignatureVerificationError("No signatures found matching the expected signature", signature)
        return json.loads(payload)

    def get_subscription_metadata(self, subscription_id: str) -> dict:
        return self.subscription_metadata.get(subscription_id, {})

    def create_customer(self, *, email: str, name: str, metadata: dict) -> str:
        customer_id = f"cus_test_{len(self.customers) + 1}"
        self.customers[customer_id] = {"email": email, "name": name, "metadata": metadata}
        self.cards[customer_id] = []
        return customer_id

    def create_setup_intent(self, customer_id: str) -> dict:
        self.setup_intents.append(customer_id)
        n = len(self.setup_intents)
        return {"id": f"seti_test_{n}", "client_secret": f"seti_test_{n}_secret"}

    def list_payment_methods(self, customer_id: str) -> list[dict]:
        default = self.defaults.get(customer_id)
        return [
            {
                "id": pm_id,
                "brand": "visa",
                "last4": "4242",
                "exp_month": 12,
                "exp_year": 2030,
                "is_default": pm_id == default,
            }
            for pm_id in self.cards.get(customer_id, [])
        ]

    def attach_payment_method(self, payment_method_id: str, customer_id: str) -> None:
        self.cards.setdefault(customer_id, []).append(payment_method_id)

    def set_default_payment_method(self, customer_id: str, payment_method_id: str) -> None:
        self.defaults[customer_id] = payment_method_id

    def detach_payment_method(self, payment_method_id: str) -> None:
        for cards in self.cards.values():
            if payment_method_id in cards:
                cards.remove(payment_method_id)


class FakeTranslationClient:
    def __init__(self):
        self.fail = False
        self.calls: list[str] = []

    def is_configured(self) -> bool:
        return True

    async def create_multilingual_content(self, text: str) -> dict[str, str]:
        self.calls.append(text)
        if self.fail:
            raise IntegrationError("Translation error 503")
        return {"en": text, "ja": f"[ja] {text}"}


class FakeStorageClient:
    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail = False

    def is_configured(self) -> bool:
        return True

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail:
            raise IntegrationError("Upload failed", code="STORAGE_FAILED")
        self.objects[key] = (data, content_type)
        return f"https://files.test/{key}"


class FakeEmailSender:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    def is_configured(self) -> bool:
        return True

    async def send(self, *, to: str, subject: str, html: str, text: str | None = None) -> str:
        if self.fail:
            raise IntegrationError("Resend error 500: upstream unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return f"email_{len(self.sent)}"


@dataclass
class Fakes:
    payment: FakePaymentClient = field(default_factory=FakePaymentClient)
    translation: FakeTranslationClient = field(default_factory=FakeTranslationClient)
    storage: FakeStorageClient = field(default_factory=FakeStorageClient)
    email: FakeEmailSender = field(default_factory=FakeEmailSender)


@pytest.fixture
def fakes() -> Fakes:
    return Fakes()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; app code may commit freely."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


# =============================================================================
# Users
# =============================================================================

@pytest.fixture
def user_factory(db: Session) -> Callable[..., User]:
    def _create(role: UserRole, credits: int = 0, name: str | None = None, **fields) -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"{role.value}-{uuid.uuid4().hex[:8]}@test.com",
            name=name or f"{role.value.title()} User",
            role=role.value,
            credits=credits,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _create


@pytest.fixture
def student(user_factory) -> User:
    return user_factory(UserRole.STUDENT, credits=15, name="Sakura Student")


@pytest.fixture
def obog(user_factory) -> User:
    return user_factory(UserRole.OBOG, credits=50, name="Kenji Alumnus")


@pytest.fixture
def company_user(user_factory) -> User:
    return user_factory(UserRole.COMPANY, credits=0, name="Recruiter Co")


@pytest.fixture
def admin(user_factory) -> User:
    return user_factory(UserRole.ADMIN, name="Admin User")


@pytest.fixture
def company(db: Session) -> Company:
    company = Company(id=uuid.uuid4(), name="Acme KK", industry="Manufacturing")
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


@pytest.fixture
def corporate_ob(db: Session, user_factory, company: Company) -> User:
    user = user_factory(UserRole.CORPORATE_OB, name="Corp Alumnus")
    db.add(CorporateOb(user_id=user.id, company_id=company.id, is_verified=True))
    db.commit()
    return user


@pytest.fixture
def make_thread(db: Session) -> Callable[[User, User], Thread]:
    def _create(user_a: User, user_b: User) -> Thread:
        first, second = ordered_pair(user_a.id, user_b.id)
        thread = Thread(participant_a_id=first, participant_b_id=second)
        db.add(thread)
        db.commit()
        db.refresh(thread)
        return thread
    return _create


@pytest.fixture
def set_compliance(db: Session) -> Callable[..., StudentProfile]:
    def _set(user: User, status: ComplianceStatus, nationality: str = "Japan") -> StudentProfile:
        profile = db.query(StudentProfile).filter(StudentProfile.id == user.id).first()
        if not profile:
            profile = StudentProfile(id=user.id, nationality=nationality, languages=[], compliance_documents=[])
            db.add(profile)
        profile.nationality = nationality
        profile.compliance_status = status.value
        db.commit()
        return profile
    return _set


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
async def client_for(db: Session, fakes: Fakes) -> AsyncGenerator[Callable[..., AsyncClient], None]:
    """
    Factory for AsyncClients bound to the test session and fake clients.

    client_for(user) adds a session cookie and CSRF header;
    client_for(None) is unauthenticated.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_client] = lambda: fakes.payment
    app.dependency_overrides[get_translation_client] = lambda: fakes.translation
    app.dependency_overrides[get_storage_client] = lambda: fakes.storage
    app.dependency_overrides[get_email_sender] = lambda: fakes.email

    clients: list[AsyncClient] = []

    def _make(user: User | None = None, **kwargs) -> AsyncClient:
        cookies = {}
        if user is not None:
            cookies[COOKIE_NAME] = create_session_token(user.id, user.role)
        client = AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=cookies,
            headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
            **kwargs,
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()


@pytest.fixture
def stripe_signature() -> str:
    """Stripe-Signature header value the fake payment client accepts."""
    return VALID_SIGNATURE
