from sqlalchemy import Column, DateTime, Integer, String
from app.core.timeutils import utcnow
from app.db.base import Base


class StripeEvent(Base):
    """Processed webhook events, used to acknowledge redeliveries."""

    __tablename__ = "stripe_events"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String, nullable=False, unique=True, index=True)
    event_type = Column(String, nullable=False)
    event_created = Column(DateTime, nullable=True)
    outcome = Column(String, nullable=False)  # applied | pending_created | skipped | ignored | stale
    processed_at = Column(DateTime, default=utcnow)
