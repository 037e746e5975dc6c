"""
Unit tests for tier catalog lookups.
"""
import pytest

from app.core.errors import InternalError
from app.db.models.subscription_tier import SubscriptionTier
from app.services import tier_service


@pytest.mark.parametrize("price_id,tier_name", [
    ("price_pro_monthly", "Pro"),
    ("price_pro_yearly", "Pro"),
    ("price_life_A", "Pro"),
    ("price_agency_monthly", "Agency"),
])
def test_price_resolves_from_any_interval_column(db, tiers, price_id, tier_name):
    assert tier_service.get_tier_by_price_id(db, price_id).name == tier_name


def test_unknown_price(db, tiers):
    assert tier_service.get_tier_by_price_id(db, "price_unknown") is None
    assert tier_service.get_tier_by_price_id(db, None) is None


def test_price_on_two_tiers_is_integrity_error(db, tiers):
    db.add(SubscriptionTier(name="Legacy", max_funnels=10, stripe_price_id_yearly="price_pro_monthly"))
    db.commit()

    with pytest.raises(InternalError):
        tier_service.get_tier_by_price_id(db, "price_pro_monthly")


def test_free_tier(db, tiers):
    assert tier_service.get_free_tier(db).id == tiers["Free"].id


def test_missing_free_tier(db):
    with pytest.raises(InternalError):
        tier_service.get_free_tier(db)


def test_registration_token(db, tiers):
    assert tier_service.get_tier_by_registration_token(db, "pro-beta-token").name == "Pro"
    assert tier_service.get_tier_by_registration_token(db, "unknown") is None

    tiers["Pro"].is_active = False
    db.commit()
    assert tier_service.get_tier_by_registration_token(db, "pro-beta-token") is None


def test_purchasable_tiers_in_display_order(db, tiers):
    tiers["Agency"].is_active = False
    db.commit()

    assert [tier.name for tier in tier_service.list_purchasable_tiers(db)] == ["Free", "Pro"]


def test_purchasable_intervals(tiers):
    assert tier_service.purchasable_intervals(tiers["Pro"]) == ["monthly", "yearly", "lifetime"]
    assert tier_service.purchasable_intervals(tiers["Agency"]) == ["monthly"]
    assert tier_service.purchasable_intervals(tiers["Free"]) == []


def test_tiers_endpoint(client, tiers):
    response = client.get("/billing/tiers")

    assert response.status_code == 200
    data = response.json()
    assert [tier["name"] for tier in data] == ["Free", "Pro", "Agency"]
    assert data[1]["intervals"] == ["monthly", "yearly", "lifetime"]
    assert data[1]["price_lifetime"] == 499
    assert data[2]["max_funnels"] == -1
