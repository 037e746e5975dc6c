"""
Script to seed the default tier catalog.
Run: python -m scripts.seed_tiers

Stripe price IDs are read from the environment, e.g. STRIPE_PRICE_PRO_MONTHLY,
STRIPE_PRICE_PRO_YEARLY, STRIPE_PRICE_PRO_LIFETIME. Existing tiers are updated
in place, matched by name.
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core import config
from app.db.session import SessionLocal
from app.db.models.subscription_tier import PRICE_ID_COLUMNS, SubscriptionTier
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_TIERS = [
    {
        "name": config.FREE_TIER_NAME,
        "max_funnels": 3,
        "price_monthly": 0,
        "price_yearly": 0,
        "price_lifetime": 0,
        "sort_order": 0,
    },
    {
        "name": "Pro",
        "max_funnels": 25,
        "price_monthly": 29,
        "price_yearly": 290,
        "price_lifetime": 499,
        "sort_order": 1,
    },
    {
        "name": "Agency",
        "max_funnels": -1,  # Unlimited
        "price_monthly": 99,
        "price_yearly": 990,
        "price_lifetime": 1499,
        "sort_order": 2,
    },
]


def _price_ids_from_env(tier_name: str) -> dict:
    prefix = f"STRIPE_PRICE_{tier_name.upper()}_"
    price_ids = {}
    for column in PRICE_ID_COLUMNS:
        interval = column.rsplit("_", 1)[-1]
        value = os.getenv(prefix + interval.upper())
        if value:
            price_ids[column] = value
    return price_ids


def seed_tiers():
    """Create or update the default tiers."""
    db = SessionLocal()
    try:
        for definition in DEFAULT_TIERS:
            values = {**definition, **_price_ids_from_env(definition["name"])}
            tier = db.query(SubscriptionTier).filter(SubscriptionTier.name == values["name"]).first()

            if tier:
                logger.info(f"Updating tier: {tier.name}")
                for column, value in values.items():
                    setattr(tier, column, value)
            else:
                logger.info(f"Creating tier: {values['name']}")
                db.add(SubscriptionTier(is_active=True, **values))

        db.commit()
        logger.info("Tier catalog seeded")
        return True

    except Exception as e:
        logger.error(f"Error seeding tiers: {e}", exc_info=True)
        db.rollback()
        return False
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(0 if seed_tiers() else 1)
