"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from app.db.models.subscription_tier import SubscriptionTier
from app.db.models.user_subscription import UserSubscription, SubscriptionStatus
from app.db.models.pending_subscription import PendingSubscription, PendingStatus
from app.db.models.stripe_event import StripeEvent
from app.db.models.funnel import Funnel

__all__ = [
    "SubscriptionTier",
    "UserSubscription",
    "SubscriptionStatus",
    "PendingSubscription",
    "PendingStatus",
    "StripeEvent",
    "Funnel",
]
