import uuid
from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String
from app.core.timeutils import utcnow
from app.db.base import Base

PRICE_ID_COLUMNS = (
    "stripe_price_id_monthly",
    "stripe_price_id_yearly",
    "stripe_price_id_lifetime",
)


class SubscriptionTier(Base):
    __tablename__ = "subscription_tiers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False, unique=True, index=True)
    stripe_product_id = Column(String, nullable=True)

    # Stripe price per billing interval; NULL means the interval is not purchasable
    stripe_price_id_monthly = Column(String, nullable=True, unique=True)
    stripe_price_id_yearly = Column(String, nullable=True, unique=True)
    stripe_price_id_lifetime = Column(String, nullable=True, unique=True)

    price_monthly = Column(Numeric(10, 2), nullable=False, default=0)
    price_yearly = Column(Numeric(10, 2), nullable=False, default=0)
    price_lifetime = Column(Numeric(10, 2), nullable=False, default=0)

    max_funnels = Column(Integer, nullable=False, default=3)  # -1 = unlimited
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    registration_token = Column(String, nullable=True, unique=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def price_id_for(self, billing_interval: str):
        return getattr(self, f"stripe_price_id_{billing_interval}", None)
