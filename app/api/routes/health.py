"""
Health check endpoint for deployment monitoring.
"""
import logging
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.timeutils import to_iso, utcnow
from app.db.session import SessionLocal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check():
    """
    Health check endpoint for deployment monitoring.

    Returns 200 if the API is up; 'database' reports connectivity.
    """
    status = "healthy"

    # Check database connectivity
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        db_status = "error"
        status = "degraded"
    finally:
        db.close()

    return {
        "status": status,
        "timestamp": to_iso(utcnow()),
        "database": db_status,
        "version": "1.0.0",
    }
