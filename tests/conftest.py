"""
Shared fixtures: in-memory SQLite database, fake gateways and an app built
with create_app() so nothing talks to Safaricom, Stripe or Gemini.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import hashlib
import hmac
import time
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from prohealth.auth import create_access_token, hash_password
from prohealth.database import Base, get_db
from prohealth.domain.insights.gemini_client import GeminiResult
from prohealth.errors import PaymentError
from prohealth.main import create_app
from prohealth.models import Booking, BookingStatus, PaymentStatus, Service, User
from prohealth.rate_limiter import RateLimiter

STRIPE_WEBHOOK_SECRET = "whsec_test_secret"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMpesaService:
    """Stands in for MpesaService; records STK pushes instead of sending them"""

    def __init__(self):
        self.calls: list[dict[str, Any]] = []
        self.error: Optional[PaymentError] = None
        self.counter = 0

    def is_available(self) -> bool:
        return True

    async def initiate_stk_push(self, booking_id: str, phone_number: str, amount: int) -> dict:
        self.calls.append({"booking_id": booking_id, "phone_number": phone_number, "amount": amount})
        if self.error:
            raise self.error
        self.counter += 1
        return {
            "MerchantRequestID": f"29115-34620561-{self.counter}",
            "CheckoutRequestID": f"ws_CO_191220191020363925_{self.counter}",
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
            "CustomerMessage": "Success. Request accepted for processing",
        }


class FakeStripeService:
    """Stands in for StripeService with an in-memory PaymentIntent store"""

    def __init__(self, webhook_secret: str = STRIPE_WEBHOOK_SECRET):
        self.webhook_secret = webhook_secret
        self.currency = "kes"
        self.intents: dict[str, dict[str, Any]] = {}
        self.error: Optional[PaymentError] = None

    def is_available(self) -> bool:
        return True

    async def create_payment_intent(self, amount_minor: int, metadata: dict, currency: Optional[str] = None) -> dict:
        if self.error:
            raise self.error
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = {
            "id": intent_id,
            "object": "payment_intent",
            "amount": amount_minor,
            "currency": currency or self.currency,
            "client_secret": f"{intent_id}_secret_abc",
            "metadata": dict(metadata),
            "status": "requires_payment_method",
        }
        self.intents[intent_id] = intent
        return dict(intent)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> dict:
        if self.error:
            raise self.error
        return dict(self.intents[payment_intent_id])


class FakeGeminiClient:
    def __init__(self, result: Optional[GeminiResult] = None, available: bool = True):
        self.result = result or GeminiResult(
            text="Headaches can be associated with dehydration, stress or lack of sleep."
        )
        self.available = available
        self.error: Optional[Exception] = None
        self.prompts: list[str] = []

    def is_available(self) -> bool:
        return self.available

    async def generate(self, prompt: str) -> GeminiResult:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mpesa():
    return FakeMpesaService()


@pytest.fixture
def stripe_service():
    return FakeStripeService()


@pytest.fixture
def gemini():
    return FakeGeminiClient()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(default_limit=5, default_window_ms=60_000, clock=clock)


@pytest.fixture
def app(session_factory, mpesa, stripe_service, gemini, rate_limiter):
    app = create_app(
        mpesa_service=mpesa,
        stripe_service=stripe_service,
        rate_limiter=rate_limiter,
        insight_client=gemini,
        lifespan_enabled=False,
    )

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def make_user(db, email: str, name: str = "Test User") -> User:
    user = User(name=name, email=email, password=hash_password("Passw0rd!"))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_booking(db, user: User, service: Service, **fields) -> Booking:
    booking = Booking(
        user_id=user.id,
        service_id=service.id,
        status=fields.pop("status", BookingStatus.PENDING),
        payment_status=fields.pop("payment_status", PaymentStatus.UNPAID),
        **fields,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def auth_header(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def stripe_signature_header(body: bytes, secret: str = STRIPE_WEBHOOK_SECRET, timestamp=None) -> str:
    """Build a Stripe-Signature header the way Stripe signs deliveries: HMAC-SHA256 over "{t}.{body}"."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(secret.encode(), f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def user(db):
    return make_user(db, "patient@example.com", "Jane Patient")


@pytest.fixture
def other_user(db):
    return make_user(db, "other@example.com", "Other Patient")


@pytest.fixture
def headers(user):
    return auth_header(user)


@pytest.fixture
def service(db):
    service = Service(
        name="Physiotherapy Session",
        description="60 minute physiotherapy session",
        price=1500.0,
        duration=60,
        category="Therapy",
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def booking(db, user, service):
    return make_booking(db, user, service)


@pytest.fixture
def now_ts():
    return int(time.time())


@pytest.fixture
def write_statements(engine):
    """Collects every INSERT/UPDATE/DELETE issued against the test database"""
    statements: list[str] = []

    def record(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith(("INSERT", "UPDATE", "DELETE")):
            statements.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    yield statements
    event.remove(engine, "before_cursor_execute", record)


def mpesa_callback_payload(
    checkout_request_id: str,
    result_code: int = 0,
    result_desc: str = "The service request is processed successfully.",
    amount: Optional[float] = 2500,
    receipt: Optional[str] = "RJ12XYZ",
) -> dict:
    callback: dict[str, Any] = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_request_id,
        "ResultCode": result_code,
        "ResultDesc": result_desc,
    }
    if result_code == 0:
        items = [{"Name": "Amount", "Value": amount}, {"Name": "MpesaReceiptNumber", "Value": receipt}]
        items.append({"Name": "PhoneNumber", "Value": 254712345678})
        callback["CallbackMetadata"] = {"Item": [item for item in items if item["Value"] is not None]}
    return {"Body": {"stkCallback": callback}}
