"""
Shared fixtures: in-memory SQLite database, API client, tier catalog and
signed Stripe webhook deliveries.
"""
import hashlib
import hmac
import json
import time
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core import config
from app.db import models  # noqa: F401
from app.db.base import Base
from app.db.models.subscription_tier import SubscriptionTier
from app.db.session import get_db


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

WEBHOOK_SECRET = "whsec_test_secret"


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.pop(get_db, None)
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    """Provide a database session for tests."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def tiers(db):
    """Free, Pro and Agency tiers with test price IDs."""
    catalog = {
        "Free": SubscriptionTier(
            name="Free", max_funnels=3, sort_order=0,
            price_monthly=0, price_yearly=0, price_lifetime=0,
        ),
        "Pro": SubscriptionTier(
            name="Pro", max_funnels=25, sort_order=1,
            price_monthly=29, price_yearly=290, price_lifetime=499,
            stripe_price_id_monthly="price_pro_monthly",
            stripe_price_id_yearly="price_pro_yearly",
            stripe_price_id_lifetime="price_life_A",
            registration_token="pro-beta-token",
        ),
        "Agency": SubscriptionTier(
            name="Agency", max_funnels=-1, sort_order=2,
            price_monthly=99, price_yearly=990, price_lifetime=0,
            stripe_price_id_monthly="price_agency_monthly",
        ),
    }
    db.add_all(catalog.values())
    db.commit()
    for tier in catalog.values():
        db.refresh(tier)
    return catalog


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Stripe-Signature header for a payload, computed the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def make_event():
    """Build a Stripe event envelope."""
    def _make(event_type, data_object, event_id=None, created=None):
        return {
            "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
            "object": "event",
            "type": event_type,
            "created": created or int(time.time()),
            "data": {"object": data_object},
        }
    return _make


@pytest.fixture
def send_event(client, webhook_secret):
    """POST a correctly signed event to the webhook endpoint."""
    def _send(event):
        payload = json.dumps(event)
        return client.post(
            "/billing/webhook",
            content=payload,
            headers={"Stripe-Signature": sign_payload(payload), "Content-Type": "application/json"},
        )
    return _send


@pytest.fixture
def signature_for():
    """Stripe-Signature header builder for hand-made deliveries."""
    return sign_payload
