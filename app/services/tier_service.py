"""
Tier catalog lookups.

Read-only access to subscription_tiers. The catalog is small and changes rarely,
so every lookup goes straight to the database.
"""
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import InternalError
from app.db.models.subscription_tier import SubscriptionTier

logger = logging.getLogger(__name__)

BILLING_INTERVALS = ("monthly", "yearly", "lifetime")


def get_tier(db: Session, tier_id: str) -> Optional[SubscriptionTier]:
    """Get a tier by primary key."""
    if not tier_id:
        return None
    return db.query(SubscriptionTier).filter(SubscriptionTier.id == tier_id).first()


def get_tier_by_name(db: Session, name: str) -> Optional[SubscriptionTier]:
    """Get a tier by its display name."""
    return db.query(SubscriptionTier).filter(SubscriptionTier.name == name).first()


def get_free_tier(db: Session) -> SubscriptionTier:
    """
    Get the designated Free tier used for downgrades.

    Raises:
        InternalError: If the catalog has no Free tier
    """
    tier = get_tier_by_name(db, config.FREE_TIER_NAME)
    if not tier:
        logger.error(f"Free tier '{config.FREE_TIER_NAME}' missing from subscription_tiers")
        raise InternalError(f"Free tier '{config.FREE_TIER_NAME}' is not configured")
    return tier


def get_tier_by_price_id(db: Session, price_id: Optional[str]) -> Optional[SubscriptionTier]:
    """
    Resolve a Stripe price ID against the monthly, yearly and lifetime columns.

    Args:
        db: Database session
        price_id: Stripe price ID

    Returns:
        The matching tier, or None for an unknown price

    Raises:
        InternalError: If more than one tier carries the price
    """
    if not price_id:
        return None

    matches = db.query(SubscriptionTier).filter(
        or_(
            SubscriptionTier.stripe_price_id_monthly == price_id,
            SubscriptionTier.stripe_price_id_yearly == price_id,
            SubscriptionTier.stripe_price_id_lifetime == price_id,
        )
    ).limit(2).all()

    if len(matches) > 1:
        logger.error(f"Price {price_id} is mapped to more than one tier: {[t.id for t in matches]}")
        raise InternalError(f"Price {price_id} is mapped to more than one tier", {"price_id": price_id})

    return matches[0] if matches else None


def get_tier_by_registration_token(db: Session, token: str) -> Optional[SubscriptionTier]:
    """Get an active tier by its registration token."""
    if not token:
        return None
    return db.query(SubscriptionTier).filter(
        SubscriptionTier.registration_token == token,
        SubscriptionTier.is_active.is_(True),
    ).first()


def list_purchasable_tiers(db: Session) -> List[SubscriptionTier]:
    """Active tiers in display order."""
    return db.query(SubscriptionTier).filter(
        SubscriptionTier.is_active.is_(True)
    ).order_by(SubscriptionTier.sort_order, SubscriptionTier.name).all()


def purchasable_intervals(tier: SubscriptionTier) -> List[str]:
    """Billing intervals that have a Stripe price on this tier."""
    return [interval for interval in BILLING_INTERVALS if tier.price_id_for(interval)]
