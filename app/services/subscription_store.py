"""
Subscription record store.

Writes to user_subscriptions and pending_subscriptions go through the
database's own conflict handling (insert-or-update keyed by user id,
insert-or-ignore keyed by checkout session id, conditional updates), never
read-then-write, so concurrent webhook deliveries cannot create duplicates.
Callers own the transaction; nothing here commits.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.db.models.pending_subscription import PendingStatus, PendingSubscription
from app.db.models.user_subscription import SubscriptionStatus, UserSubscription
from app.db.upsert import insert_ignore, upsert
from app.core.timeutils import utcnow
from app.core import config
from app.services.billing_transitions import (
    TRANSITIONS,
    BillingEvent,
    MatchKey,
    Transition,
    TransitionInput,
    next_state,
)

logger = logging.getLogger(__name__)


def get_subscription(db: Session, user_id: str) -> Optional[UserSubscription]:
    """Get the subscription record for a user."""
    return db.query(UserSubscription).filter(UserSubscription.user_id == user_id).first()


def find_subscription(db: Session, match_on: MatchKey, value: str) -> Optional[UserSubscription]:
    """Find a subscription record by user, Stripe subscription or Stripe customer ID."""
    if not value:
        return None
    column = getattr(UserSubscription, match_on.value)
    return db.query(UserSubscription).filter(column == value).first()


def get_customer_id_for_user(db: Session, user_id: str) -> Optional[str]:
    """Stripe customer ID already mapped to this user, if any."""
    subscription = get_subscription(db, user_id)
    return subscription.stripe_customer_id if subscription else None


def set_customer_id(db: Session, user_id: str, customer_id: str) -> bool:
    """
    Remember a Stripe customer on the user's existing record.

    Returns:
        True if a record was updated (no record is created here)
    """
    updated = db.query(UserSubscription).filter(
        UserSubscription.user_id == user_id,
        UserSubscription.stripe_customer_id.is_(None),
    ).update(
        {"stripe_customer_id": customer_id, "updated_at": utcnow()},
        synchronize_session=False,
    )
    return updated > 0


def upsert_subscription(
    db: Session,
    user_id: str,
    changes: Dict[str, Any],
    event_created: Optional[datetime] = None,
) -> None:
    """Insert or update the user's subscription record in one statement."""
    now = utcnow()
    values = dict(changes)
    values["user_id"] = user_id
    values["updated_at"] = now
    if event_created is not None:
        values["last_event_at"] = event_created

    update_columns = [column for column in values if column != "user_id"]
    upsert(db, UserSubscription, {**values, "created_at": now}, ["user_id"], update_columns=update_columns)


def update_subscriptions(
    db: Session,
    match_on: MatchKey,
    value: str,
    changes: Dict[str, Any],
    event_created: Optional[datetime] = None,
    blocked_from=frozenset(),
    enforce_ordering: bool = False,
) -> int:
    """
    Conditionally update existing subscription records.

    Args:
        db: Database session
        match_on: Column that locates the record(s)
        value: Value of that column
        changes: Column values to write
        event_created: Provider timestamp of the triggering event
        blocked_from: Current statuses that must not be overwritten
        enforce_ordering: Skip records already updated by a newer event

    Returns:
        Number of records updated
    """
    column = getattr(UserSubscription, match_on.value)
    query = db.query(UserSubscription).filter(column == value)

    if blocked_from:
        query = query.filter(~UserSubscription.status.in_(list(blocked_from)))

    if enforce_ordering and event_created is not None:
        query = query.filter(or_(
            UserSubscription.last_event_at.is_(None),
            UserSubscription.last_event_at <= event_created,
        ))

    values = dict(changes)
    values["updated_at"] = utcnow()
    if event_created is not None:
        values["last_event_at"] = event_created

    return query.update(values, synchronize_session=False)


def apply_transition(
    db: Session,
    transition: Transition,
    key: str,
    changes: Dict[str, Any],
    event_created: Optional[datetime] = None,
    enforce_ordering: bool = False,
) -> int:
    """
    Write a transition's changes using the transition's lookup key.

    Returns:
        Number of records written
    """
    if transition.creates_record:
        upsert_subscription(db, key, changes, event_created=event_created)
        return 1

    return update_subscriptions(
        db,
        transition.match_on,
        key,
        changes,
        event_created=event_created,
        blocked_from=transition.blocked_from,
        enforce_ordering=enforce_ordering,
    )


def ensure_default_subscription(db: Session, user_id: str, tier_id: str) -> bool:
    """
    Give a new account its default record unless it already has one.

    Returns:
        True if a record was created
    """
    now = utcnow()
    return insert_ignore(
        db,
        UserSubscription,
        {
            "user_id": user_id,
            "tier_id": tier_id,
            "status": SubscriptionStatus.ACTIVE.value,
            "cancel_at_period_end": False,
            "is_lifetime": False,
            "current_period_start": now,
            "created_at": now,
            "updated_at": now,
        },
        ["user_id"],
    )


def get_pending_by_session(db: Session, session_id: str) -> Optional[PendingSubscription]:
    """Get the pending subscription created for a checkout session."""
    return db.query(PendingSubscription).filter(
        PendingSubscription.stripe_session_id == session_id
    ).first()


def create_pending_subscription(
    db: Session,
    session_id: str,
    tier_id: str,
    subscription_id: Optional[str],
    customer_id: Optional[str],
    customer_email: Optional[str],
    expires_at: datetime,
) -> bool:
    """
    Record an anonymous checkout. A row that already exists for the session is
    left untouched so redeliveries never reset a linked record.

    Returns:
        True if a row was created
    """
    return insert_ignore(
        db,
        PendingSubscription,
        {
            "id": str(uuid.uuid4()),
            "stripe_session_id": session_id,
            "tier_id": tier_id,
            "stripe_subscription_id": subscription_id,
            "stripe_customer_id": customer_id,
            "customer_email": customer_email,
            "status": PendingStatus.PENDING.value,
            "expires_at": expires_at,
            "created_at": utcnow(),
        },
        ["stripe_session_id"],
    )


def mark_pending_linked(db: Session, pending_id: str, user_id: str, linked_at: datetime) -> bool:
    """
    Move a pending row to linked, only if it is still pending.

    Returns:
        True if this call performed the transition
    """
    updated = db.query(PendingSubscription).filter(
        PendingSubscription.id == pending_id,
        PendingSubscription.status == PendingStatus.PENDING.value,
    ).update(
        {
            "status": PendingStatus.LINKED.value,
            "linked_user_id": user_id,
            "linked_at": linked_at,
        },
        synchronize_session=False,
    )
    return updated == 1


def mark_pending_refunded(db: Session, customer_id: str) -> int:
    """
    Retire unlinked pending rows of a refunded customer so they can no longer
    be linked.

    Returns:
        Number of rows retired
    """
    return db.query(PendingSubscription).filter(
        PendingSubscription.stripe_customer_id == customer_id,
        PendingSubscription.status == PendingStatus.PENDING.value,
    ).update({"status": PendingStatus.REFUNDED.value}, synchronize_session=False)


def apply_billing_event(
    db: Session,
    event: BillingEvent,
    key: str,
    inputs: TransitionInput,
    event_created: Optional[datetime] = None,
) -> int:
    """
    Run a billing event through the transition table and write the result.

    Args:
        db: Database session
        event: Billing event
        key: Value of the event's lookup column (user, subscription or customer ID)
        inputs: Values gathered for the event
        event_created: Provider timestamp of the webhook event, if any

    Returns:
        Number of records written
    """
    transition = TRANSITIONS[event]
    changes = next_state(event, inputs)
    written = apply_transition(
        db,
        transition,
        key,
        changes,
        event_created=event_created,
        enforce_ordering=config.WEBHOOK_ENFORCE_EVENT_ORDERING,
    )
    logger.debug(f"Applied {event.value} on {transition.match_on.value}={key}: {written} record(s)")
    return written
