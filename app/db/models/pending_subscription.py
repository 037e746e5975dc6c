import enum
import uuid
from sqlalchemy import Column, DateTime, ForeignKey, String
from app.core.timeutils import utcnow
from app.db.base import Base


class PendingStatus(str, enum.Enum):
    PENDING = "pending"
    LINKED = "linked"
    REFUNDED = "refunded"


class PendingSubscription(Base):
    """Checkout completed before the purchaser had an account."""

    __tablename__ = "pending_subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    stripe_session_id = Column(String, nullable=False, unique=True, index=True)
    tier_id = Column(String(36), ForeignKey("subscription_tiers.id"), nullable=False)

    stripe_subscription_id = Column(String, nullable=True)  # NULL => lifetime purchase
    stripe_customer_id = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)

    status = Column(String, nullable=False, default=PendingStatus.PENDING.value)
    linked_user_id = Column(String(36), nullable=True)
    linked_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)
