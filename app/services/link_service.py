"""
Links an anonymous checkout to the account created after it.

The subscription write is the one that matters: once it commits the user has
their tier. Marking the pending row linked is bookkeeping and runs in a
savepoint so a failure there cannot undo the subscription.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import ConflictError, ExpiredError, InternalError, NotFoundError, ValidationError
from app.core.timeutils import utcnow
from app.db.models.pending_subscription import PendingStatus
from app.services import subscription_store
from app.services.billing_transitions import BillingEvent, TransitionInput

logger = logging.getLogger(__name__)


def link_pending_subscription(db: Session, session_id: Optional[str], user_id: Optional[str]) -> Dict[str, Any]:
    """
    Attach the pending subscription of a checkout session to a user.

    Args:
        db: Database session
        session_id: Stripe Checkout session ID of the anonymous purchase
        user_id: Newly created account's user ID

    Returns:
        Dictionary with 'success', 'tier_id' and 'is_lifetime'

    Raises:
        ValidationError: Missing session_id or user_id
        NotFoundError: No pending subscription for the session
        ExpiredError: The pending subscription has expired or was refunded
        ConflictError: Already linked, including by a concurrent request
    """
    if not session_id or not user_id:
        raise ValidationError("Missing required parameters: session_id, user_id")

    pending = subscription_store.get_pending_by_session(db, session_id)
    if not pending:
        raise NotFoundError("Pending subscription not found", {"session_id": session_id})

    now = utcnow()
    if now > pending.expires_at:
        raise ExpiredError("Pending subscription has expired", {"session_id": session_id})

    if pending.status == PendingStatus.REFUNDED.value:
        raise ExpiredError("Pending subscription was refunded", {"session_id": session_id})

    if pending.status == PendingStatus.LINKED.value:
        raise ConflictError("Subscription already linked", {"session_id": session_id})

    inputs = TransitionInput(
        now=now,
        tier_id=pending.tier_id,
        customer_id=pending.stripe_customer_id,
        subscription_id=pending.stripe_subscription_id,
        # Placeholder until the next subscription webhook brings the real period
        period_end=now + timedelta(days=config.LINKED_PERIOD_DAYS),
    )
    is_lifetime = not pending.stripe_subscription_id
    pending_id = pending.id
    tier_id = pending.tier_id

    try:
        subscription_store.apply_billing_event(db, BillingEvent.PENDING_SUBSCRIPTION_LINKED, user_id, inputs)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to write subscription for user_id={user_id}, session_id={session_id}: {e}")
        raise InternalError("Failed to link subscription")

    linked = None
    try:
        with db.begin_nested():
            linked = subscription_store.mark_pending_linked(db, pending_id, user_id, now)
    except SQLAlchemyError as e:
        logger.error(f"Failed to mark pending subscription linked: session_id={session_id}, error={e}")

    if linked is False:
        db.rollback()
        logger.warning(f"Pending subscription linked concurrently: session_id={session_id}")
        raise ConflictError("Subscription already linked", {"session_id": session_id})

    db.commit()
    logger.info(f"Linked pending subscription: session_id={session_id}, user_id={user_id}, tier_id={tier_id}")
    return {"success": True, "tier_id": tier_id, "is_lifetime": is_lifetime}
