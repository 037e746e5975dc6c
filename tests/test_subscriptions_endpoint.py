"""
Integration tests for subscription provisioning and GET /me/subscription.
"""
import time

import pytest
from jose import jwt

from app.core import auth_dependency
from app.db.models.funnel import Funnel
from app.db.models.user_subscription import UserSubscription


JWT_SECRET = "test-jwt-secret"


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(auth_dependency, "SUPABASE_JWT_SECRET", JWT_SECRET)
    return JWT_SECRET


def create_access_token(user_id, secret=JWT_SECRET, audience="authenticated", expires_in=3600):
    claims = {"sub": user_id, "aud": audience, "exp": int(time.time()) + expires_in, "role": "authenticated"}
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_headers(user_id, **kwargs):
    return {"Authorization": f"Bearer {create_access_token(user_id, **kwargs)}"}


def add_record(db, user_id, tier, status="active", **fields):
    db.add(UserSubscription(
        user_id=user_id,
        tier_id=tier.id,
        status=status,
        cancel_at_period_end=False,
        is_lifetime=fields.pop("is_lifetime", False),
        **fields,
    ))
    db.commit()


def add_funnels(db, user_id, count):
    db.add_all([Funnel(user_id=user_id, name=f"Funnel {i}") for i in range(count)])
    db.commit()


class TestProvision:
    def test_new_account_gets_free_tier(self, client, tiers):
        response = client.post("/subscriptions/provision", json={"user_id": "U1"})

        assert response.status_code == 200
        data = response.json()
        assert data["created"] is True
        assert data["tier_name"] == "Free"
        assert data["status"] == "active"
        assert data["is_lifetime"] is False

    def test_provisioning_twice_keeps_existing_record(self, client, db, tiers):
        add_record(db, "U1", tiers["Pro"], stripe_subscription_id="sub_1")

        response = client.post("/subscriptions/provision", json={"user_id": "U1"})

        assert response.json()["created"] is False
        assert response.json()["tier_name"] == "Pro"

    def test_registration_token_selects_tier(self, client, tiers):
        response = client.post(
            "/subscriptions/provision", json={"user_id": "U2", "registration_token": "pro-beta-token"}
        )

        assert response.status_code == 200
        assert response.json()["tier_id"] == tiers["Pro"].id
        assert response.json()["created"] is True

    def test_invalid_registration_token(self, client, db, tiers):
        response = client.post("/subscriptions/provision", json={"user_id": "U2", "registration_token": "nope"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid registration token"}
        assert db.query(UserSubscription).count() == 0

    def test_missing_free_tier(self, client):
        response = client.post("/subscriptions/provision", json={"user_id": "U1"})

        assert response.status_code == 500
        assert "Free" in response.json()["error"]


class TestMySubscription:
    def test_requires_token(self, client):
        response = client.get("/me/subscription")
        assert response.status_code == 401

    def test_rejects_token_with_wrong_secret(self, client):
        response = client.get("/me/subscription", headers=auth_headers("U1", secret="other-secret"))
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    def test_rejects_wrong_audience(self, client):
        response = client.get("/me/subscription", headers=auth_headers("U1", audience="anon"))
        assert response.status_code == 401

    def test_rejects_expired_token(self, client):
        response = client.get("/me/subscription", headers=auth_headers("U1", expires_in=-60))
        assert response.status_code == 401

    def test_paid_tier_limits(self, client, db, tiers):
        add_record(db, "U1", tiers["Pro"])
        add_funnels(db, "U1", 2)

        response = client.get("/me/subscription", headers=auth_headers("U1"))

        assert response.status_code == 200
        data = response.json()
        assert data["tier_name"] == "Pro"
        assert data["funnel_limit"] == 25
        assert data["funnel_count"] == 2
        assert data["can_create_funnel"] is True
        assert data["is_over_limit"] is False
        assert data["is_unlimited"] is False

    def test_unlimited_tier(self, client, db, tiers):
        add_record(db, "U1", tiers["Agency"])
        add_funnels(db, "U1", 40)

        data = client.get("/me/subscription", headers=auth_headers("U1")).json()

        assert data["funnel_limit"] == -1
        assert data["is_unlimited"] is True
        assert data["can_create_funnel"] is True
        assert data["is_over_limit"] is False

    def test_no_record_uses_free_limits(self, client, tiers):
        data = client.get("/me/subscription", headers=auth_headers("U1")).json()

        assert data["tier_name"] == "Free"
        assert data["status"] is None
        assert data["funnel_limit"] == 3

    def test_no_catalog_uses_default_limit(self, client):
        data = client.get("/me/subscription", headers=auth_headers("U1")).json()

        assert data["tier_id"] is None
        assert data["funnel_limit"] == 3

    def test_downgraded_user_over_limit(self, client, db, tiers):
        add_record(db, "U1", tiers["Free"], status="refunded")
        add_funnels(db, "U1", 5)

        data = client.get("/me/subscription", headers=auth_headers("U1")).json()

        assert data["status"] == "refunded"
        assert data["can_create_funnel"] is False
        assert data["is_over_limit"] is True

    def test_canceled_record_counts_as_free(self, client, db, tiers):
        add_record(db, "U1", tiers["Pro"], status="canceled")
        add_funnels(db, "U1", 3)

        data = client.get("/me/subscription", headers=auth_headers("U1")).json()

        assert data["tier_name"] == "Free"
        assert data["funnel_limit"] == 3
        assert data["can_create_funnel"] is False
        assert data["is_over_limit"] is False
