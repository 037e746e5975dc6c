import enum
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from app.core.timeutils import utcnow
from app.db.base import Base


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    REFUNDED = "refunded"


# Statuses that always pair with the Free tier
DOWNGRADED_STATUSES = (SubscriptionStatus.CANCELED.value, SubscriptionStatus.REFUNDED.value)


class UserSubscription(Base):
    __tablename__ = "user_subscriptions"

    # One row per user; the identity provider owns the user record
    user_id = Column(String(36), primary_key=True)
    tier_id = Column(String(36), ForeignKey("subscription_tiers.id"), nullable=False)

    stripe_subscription_id = Column(String, nullable=True, index=True)  # NULL for lifetime/free
    stripe_customer_id = Column(String, nullable=True, index=True)

    # active | past_due | canceled | refunded, or the Stripe subscription status verbatim
    status = Column(String, nullable=False, default=SubscriptionStatus.ACTIVE.value)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    is_lifetime = Column(Boolean, nullable=False, default=False)

    last_event_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
