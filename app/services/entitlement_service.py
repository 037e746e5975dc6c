"""
Entitlement service.

Turns a user's subscription record into what the funnel builder needs to know:
which tier applies and how many funnels the user may have.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core import config
from app.core.plan_limits import can_create_funnel, get_funnel_limit, is_over_limit, is_unlimited
from app.core.timeutils import to_iso
from app.db.models.funnel import Funnel
from app.db.models.subscription_tier import SubscriptionTier
from app.db.models.user_subscription import DOWNGRADED_STATUSES, UserSubscription
from app.services import subscription_store, tier_service

logger = logging.getLogger(__name__)


def get_funnel_count(db: Session, user_id: str) -> int:
    """Number of funnels the user owns."""
    return db.query(func.count(Funnel.id)).filter(Funnel.user_id == user_id).scalar() or 0


def get_effective_tier(db: Session, record: Optional[UserSubscription]) -> Optional[SubscriptionTier]:
    """
    Tier whose limits apply to a subscription record.

    Users without a record, and records that were canceled or refunded, get the
    Free tier. Returns None when the catalog has no Free tier either.
    """
    if record is not None and record.status not in DOWNGRADED_STATUSES:
        tier = tier_service.get_tier(db, record.tier_id)
        if tier:
            return tier
        logger.warning(f"Subscription for user_id={record.user_id} points at missing tier_id={record.tier_id}")
    return tier_service.get_tier_by_name(db, config.FREE_TIER_NAME)


def subscription_summary(record: Optional[UserSubscription], tier: Optional[SubscriptionTier]) -> Dict[str, Any]:
    """Serialize a subscription record and its tier."""
    return {
        "tier_id": tier.id if tier else None,
        "tier_name": tier.name if tier else None,
        "status": record.status if record else None,
        "is_lifetime": bool(record.is_lifetime) if record else False,
        "cancel_at_period_end": bool(record.cancel_at_period_end) if record else False,
        "current_period_start": to_iso(record.current_period_start) if record else None,
        "current_period_end": to_iso(record.current_period_end) if record else None,
        "stripe_customer_id": record.stripe_customer_id if record else None,
    }


def get_entitlements(db: Session, user_id: str) -> Dict[str, Any]:
    """
    Entitlement summary for a user.

    Returns:
        Subscription summary plus funnel_limit, is_unlimited, funnel_count,
        can_create_funnel and is_over_limit
    """
    record = subscription_store.get_subscription(db, user_id)
    tier = get_effective_tier(db, record)
    limit = get_funnel_limit(tier.max_funnels if tier else None)
    funnel_count = get_funnel_count(db, user_id)

    response = subscription_summary(record, tier)
    response.update({
        "user_id": user_id,
        "funnel_limit": limit,
        "is_unlimited": is_unlimited(limit),
        "funnel_count": funnel_count,
        "can_create_funnel": can_create_funnel(limit, funnel_count),
        "is_over_limit": is_over_limit(limit, funnel_count),
    })

    logger.debug(f"Entitlements requested: user_id={user_id}, tier={response['tier_name']}, limit={limit}")
    return response
