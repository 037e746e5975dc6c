"""
Tests for checkout session creation, success-page lookup and the customer portal.
"""
import pytest
import stripe

from app.core import config
from app.core.errors import ExternalServiceError, ValidationError
from app.db.models.user_subscription import UserSubscription
from app.services import billing_service, stripe_service


@pytest.fixture
def checkout_calls(monkeypatch):
    """Capture parameters sent to Stripe Checkout."""
    calls = []

    def fake_create(params):
        calls.append(params)
        return {"url": "https://checkout.stripe.com/c/pay/cs_test_1", "session_id": "cs_test_1"}

    monkeypatch.setattr(stripe_service, "create_checkout_session", fake_create)
    return calls


@pytest.fixture
def created_customers(monkeypatch):
    customers = []

    def fake_customer(email, user_id):
        customers.append((email, user_id))
        return "cus_new"

    monkeypatch.setattr(stripe_service, "create_customer", fake_customer)
    return customers


def add_free_record(db, tiers, user_id="U1", customer_id=None):
    db.add(UserSubscription(
        user_id=user_id,
        tier_id=tiers["Free"].id,
        status="active",
        stripe_customer_id=customer_id,
        cancel_at_period_end=False,
        is_lifetime=False,
    ))
    db.commit()


class TestCreateCheckoutSession:
    def test_authenticated_monthly(self, db, tiers, checkout_calls, created_customers):
        add_free_record(db, tiers)

        result = billing_service.create_checkout_session(
            db, "price_pro_monthly", user_id="U1", user_email="u1@example.com", origin="https://app.example.com"
        )

        assert result == {"url": "https://checkout.stripe.com/c/pay/cs_test_1", "session_id": "cs_test_1"}
        params = checkout_calls[0]
        assert params["mode"] == "subscription"
        assert params["customer"] == "cus_new"
        assert params["client_reference_id"] == "U1"
        assert params["metadata"] == {"billing_interval": "monthly", "is_lifetime": "false", "user_id": "U1"}
        assert params["subscription_data"] == {"metadata": {"user_id": "U1"}}
        assert params["success_url"] == (
            "https://app.example.com/profile?checkout=success&session_id={CHECKOUT_SESSION_ID}"
        )
        assert params["cancel_url"] == "https://app.example.com/profile?checkout=canceled"

        db.expire_all()
        assert db.query(UserSubscription).one().stripe_customer_id == "cus_new"

    def test_reuses_existing_customer(self, db, tiers, checkout_calls, created_customers):
        add_free_record(db, tiers, customer_id="cus_existing")

        billing_service.create_checkout_session(
            db, "price_pro_yearly", user_id="U1", user_email="u1@example.com", billing_interval="yearly"
        )

        assert created_customers == []
        assert checkout_calls[0]["customer"] == "cus_existing"

    def test_customer_not_persisted_without_record(self, db, tiers, checkout_calls, created_customers):
        billing_service.create_checkout_session(db, "price_pro_monthly", user_id="U9", user_email="u9@example.com")

        assert created_customers == [("u9@example.com", "U9")]
        assert db.query(UserSubscription).count() == 0

    def test_authenticated_lifetime_uses_payment_mode(self, db, tiers, checkout_calls, created_customers):
        billing_service.create_checkout_session(
            db, "price_life_A", user_id="U1", user_email="u1@example.com", billing_interval="lifetime"
        )

        params = checkout_calls[0]
        assert params["mode"] == "payment"
        assert params["metadata"]["is_lifetime"] == "true"
        assert "subscription_data" not in params

    def test_anonymous_lifetime(self, db, checkout_calls, created_customers):
        billing_service.create_checkout_session(db, "price_life_A", billing_interval="lifetime")

        params = checkout_calls[0]
        assert created_customers == []
        assert "customer" not in params
        assert "client_reference_id" not in params
        assert params["customer_creation"] == "always"
        assert params["success_url"] == f"{config.FRONTEND_URL}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}"
        assert params["cancel_url"] == f"{config.FRONTEND_URL}/?checkout=canceled"

    def test_explicit_redirects_win(self, db, checkout_calls):
        billing_service.create_checkout_session(
            db, "price_pro_monthly", success_url="https://x.test/ok", cancel_url="https://x.test/no"
        )

        assert checkout_calls[0]["success_url"] == "https://x.test/ok"
        assert checkout_calls[0]["cancel_url"] == "https://x.test/no"

    @pytest.mark.parametrize("user_id,user_email", [("U1", None), (None, "u1@example.com")])
    def test_user_id_and_email_required_together(self, db, checkout_calls, created_customers, user_id, user_email):
        with pytest.raises(ValidationError):
            billing_service.create_checkout_session(db, "price_pro_monthly", user_id=user_id, user_email=user_email)

        assert checkout_calls == []
        assert created_customers == []

    def test_missing_price(self, db, checkout_calls):
        with pytest.raises(ValidationError):
            billing_service.create_checkout_session(db, None)
        assert checkout_calls == []

    def test_invalid_interval(self, db, checkout_calls):
        with pytest.raises(ValidationError):
            billing_service.create_checkout_session(db, "price_pro_monthly", billing_interval="weekly")


class TestCheckoutEndpoint:
    def test_returns_session(self, client, checkout_calls):
        response = client.post("/billing/create-checkout-session", json={"price_id": "price_pro_monthly"})

        assert response.status_code == 200
        assert response.json()["session_id"] == "cs_test_1"

    def test_missing_price_id(self, client):
        response = client.post("/billing/create-checkout-session", json={})

        assert response.status_code == 400
        assert "price_id" in response.json()["error"]

    def test_user_id_without_email_rejected(self, client, checkout_calls):
        response = client.post(
            "/billing/create-checkout-session",
            json={"price_id": "price_pro_monthly", "user_id": "U1"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "user_id and user_email must be supplied together"}
        assert checkout_calls == []

    def test_invalid_interval(self, client):
        response = client.post(
            "/billing/create-checkout-session",
            json={"price_id": "price_pro_monthly", "billing_interval": "weekly"},
        )
        assert response.status_code == 400

    def test_stripe_error_passes_status_through(self, client, monkeypatch):
        def raise_invalid(**params):
            raise stripe.error.InvalidRequestError("No such price: 'price_gone'", "line_items", http_status=400)

        monkeypatch.setattr(stripe.checkout.Session, "create", raise_invalid)

        response = client.post("/billing/create-checkout-session", json={"price_id": "price_gone"})

        assert response.status_code == 400
        assert "No such price" in response.json()["error"]


class TestRetrieveCheckoutSession:
    def test_summary_with_tier(self, client, tiers, monkeypatch):
        monkeypatch.setattr(stripe_service, "retrieve_checkout_session", lambda session_id: {
            "id": session_id,
            "payment_status": "paid",
            "subscription": "sub_1",
            "customer_details": {"email": "buyer@example.com"},
        })
        monkeypatch.setattr(stripe_service, "get_checkout_price_id", lambda session_id: "price_pro_monthly")

        response = client.post("/billing/retrieve-checkout-session", json={"session_id": "cs_1"})

        assert response.status_code == 200
        assert response.json() == {
            "customer_email": "buyer@example.com",
            "payment_status": "paid",
            "subscription_id": "sub_1",
            "tier_name": "Pro",
            "tier_id": tiers["Pro"].id,
        }

    def test_line_item_failure_omits_tier(self, db, tiers, monkeypatch):
        monkeypatch.setattr(stripe_service, "retrieve_checkout_session", lambda session_id: {
            "id": session_id, "payment_status": "unpaid", "customer_email": "buyer@example.com",
        })

        def failing_line_items(session_id):
            raise ExternalServiceError("Failed to list checkout line items: timeout")

        monkeypatch.setattr(stripe_service, "get_checkout_price_id", failing_line_items)

        result = billing_service.retrieve_checkout_session(db, "cs_1")

        assert result["tier_name"] is None
        assert result["customer_email"] == "buyer@example.com"
        assert result["payment_status"] == "unpaid"

    def test_blank_session_id(self, db):
        with pytest.raises(ValidationError):
            billing_service.retrieve_checkout_session(db, "  ")


class TestPortalSession:
    def test_creates_portal_session(self, client, monkeypatch):
        monkeypatch.setattr(
            stripe_service,
            "create_billing_portal_session",
            lambda customer_id, return_url: {"url": f"https://billing.stripe.com/p/{customer_id}"},
        )

        response = client.post(
            "/billing/create-portal-session",
            json={"customer_id": "cus_1", "return_url": "https://app.example.com/profile"},
        )

        assert response.status_code == 200
        assert response.json() == {"url": "https://billing.stripe.com/p/cus_1"}

    def test_missing_customer(self):
        with pytest.raises(ValidationError):
            billing_service.create_portal_session("", "https://app.example.com/profile")
