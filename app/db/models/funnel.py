import uuid
from sqlalchemy import Column, DateTime, String
from app.core.timeutils import utcnow
from app.db.base import Base


class Funnel(Base):
    # Owned by the funnel builder; billing only counts rows per user
    __tablename__ = "funnels"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)
