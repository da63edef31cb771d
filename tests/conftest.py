"""
Pytest configuration and fixtures for testing
"""
import os

# Must be set before app.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.pop("STRIPE_SECRET_KEY", None)

import time
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import Base, get_db
from app.models.user import User
from app.billing.plans import PLAN_QUOTAS
from app.billing.timeutils import now_utc
from app.services.stripe_service import stripe_service
from app.main import app

# Create in-memory SQLite database for testing, shared across threads
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

PERIOD_START_TS = 1_700_000_000
PERIOD_END_TS = PERIOD_START_TS + 30 * 24 * 3600


@pytest.fixture(autouse=True)
def price_ids(monkeypatch):
    """Known Stripe price ids for every test."""
    monkeypatch.setattr(settings, "stripe_price_smart", "price_smart")
    monkeypatch.setattr(settings, "stripe_price_pro", "price_pro")
    monkeypatch.setattr(settings, "stripe_price_scale", "price_scale")


@pytest.fixture
def db():
    """
    Fixture that provides an isolated, in-memory SQLite session for each test.
    Tables are created before and dropped after the test.
    """
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db):
    """FastAPI TestClient fixture with test database override"""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


def make_token(user_id="user-1", email="seller@example.com", expires_in=3600, secret=None, audience="authenticated"):
    now = int(time.time())
    claims = {"sub": user_id, "email": email, "aud": audience, "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, secret or settings.supabase_jwt_secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def make_user(db):
    """Factory for users; paid statuses get a period that is still running."""

    def _make(user_id="user-1", email="seller@example.com", plan="FREE", status="inactive", used=0.0, **fields):
        current = now_utc()
        billable = status != "inactive"
        values = {
            "analysis_quota": PLAN_QUOTAS[plan],
            "current_period_start": current - timedelta(days=1) if billable else None,
            "current_period_end": current + timedelta(days=29) if billable else None,
        }
        values.update(fields)
        user = User(
            id=user_id,
            email=email,
            subscription_plan=plan,
            subscription_status=status,
            analysis_used_this_month=used,
            **values,
        )
        db.add(user)
        db.commit()
        return user

    return _make


def stripe_subscription(
    price_id="price_pro",
    subscription_id="sub_1",
    customer_id="cus_1",
    status="active",
    cancel_at_period_end=False,
    period_start=PERIOD_START_TS,
    period_end=PERIOD_END_TS,
):
    return {
        "id": subscription_id,
        "customer": customer_id,
        "status": status,
        "cancel_at_period_end": cancel_at_period_end,
        "current_period_start": period_start,
        "current_period_end": period_end,
        "items": {"data": [{"id": f"si_{subscription_id}", "price": {"id": price_id}}]},
    }


class FakeStripe:
    """Stands in for the network half of StripeService."""

    def __init__(self):
        self.customers = {}
        self.subscriptions = {}
        self.checkout_sessions = {}
        self.created_sessions = []
        self.updated = []
        self.canceled = []
        self.prices = []

    def add_customer(self, email, customer_id="cus_1"):
        self.customers[email] = {"id": customer_id, "email": email}
        self.subscriptions.setdefault(customer_id, [])
        return self.customers[email]

    def add_subscription(self, email, **kwargs):
        customer_id = kwargs.setdefault("customer_id", "cus_1")
        if email not in self.customers:
            self.add_customer(email, customer_id)
        subscription = stripe_subscription(**kwargs)
        self.subscriptions[customer_id].append(subscription)
        return subscription

    def find_customer_by_email(self, email):
        return self.customers.get(email)

    def list_active_subscriptions(self, customer_id, limit=1):
        return [s for s in self.subscriptions.get(customer_id, []) if s["status"] == "active"][:limit]

    def retrieve_subscription(self, subscription_id):
        for subscriptions in self.subscriptions.values():
            for subscription in subscriptions:
                if subscription["id"] == subscription_id:
                    return subscription
        raise KeyError(subscription_id)

    def retrieve_customer(self, customer_id):
        for customer in self.customers.values():
            if customer["id"] == customer_id:
                return customer
        return {"id": customer_id, "email": None}

    def create_checkout_session(self, **kwargs):
        self.created_sessions.append(kwargs)
        session_id = f"cs_test_{len(self.created_sessions)}"
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    def retrieve_checkout_session(self, session_id):
        return self.checkout_sessions[session_id]

    def update_subscription(self, subscription_id, item_id, new_price_id):
        self.updated.append((subscription_id, item_id, new_price_id))
        return {"id": subscription_id}

    def schedule_cancellation(self, subscription_id):
        self.canceled.append(subscription_id)
        return {"id": subscription_id, "cancel_at_period_end": True, "current_period_end": PERIOD_END_TS}

    def list_monthly_prices(self):
        return self.prices


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(stripe_service, "secret_key", "sk_test_fake")
    for name in (
        "find_customer_by_email",
        "list_active_subscriptions",
        "retrieve_subscription",
        "retrieve_customer",
        "create_checkout_session",
        "retrieve_checkout_session",
        "update_subscription",
        "schedule_cancellation",
        "list_monthly_prices",
    ):
        monkeypatch.setattr(stripe_service, name, getattr(fake, name))
    return fake
