"""
Webhook event processor.

Verifies Stripe deliveries, drops redeliveries through the stripe_events
ledger, and dispatches each event type to a handler. Handlers translate the
Stripe payload into a billing event and let the transition table decide what
is written. One commit per delivery: the transition and its ledger row land
together or not at all.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import InternalError
from app.core.timeutils import from_unix, utcnow
from app.db.models.stripe_event import StripeEvent
from app.db.models.user_subscription import SubscriptionStatus
from app.db.upsert import insert_ignore
from app.services import billing_invoice_handlers, stripe_service, subscription_store, tier_service
from app.services.billing_transitions import BillingEvent, MatchKey, TransitionInput, next_state

logger = logging.getLogger(__name__)

EventHandler = Callable[[Dict, Session, Optional[datetime]], str]


def _object_id(value) -> Optional[str]:
    # Expanded Stripe references arrive as objects
    if isinstance(value, dict):
        return value.get("id")
    return value


def subscription_period(subscription: Dict) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Current billing period of a Stripe subscription.

    Newer API versions carry the period on the subscription items instead of
    the subscription itself.
    """
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None or end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            start = start if start is not None else items[0].get("current_period_start")
            end = end if end is not None else items[0].get("current_period_end")
    return from_unix(start), from_unix(end)


def handle_checkout_session_completed(
    session: Dict, db: Session, event_created: Optional[datetime] = None
) -> str:
    """
    Handle checkout.session.completed webhook event.

    Signed-in buyers get their record upgraded right away. Anonymous purchases
    become a pending subscription that the buyer links after signup.
    """
    session_id = session.get("id")
    metadata = session.get("metadata") or {}
    user_id = session.get("client_reference_id") or metadata.get("user_id")
    customer_id = _object_id(session.get("customer"))
    customer_details = session.get("customer_details") or {}
    customer_email = customer_details.get("email") or session.get("customer_email")
    is_lifetime = session.get("mode") == "payment" or metadata.get("is_lifetime") == "true"
    now = utcnow()

    if is_lifetime:
        subscription_id = None
        price_id = stripe_service.get_checkout_price_id(session_id)
        event = BillingEvent.LIFETIME_CHECKOUT_COMPLETED
        inputs = TransitionInput(now=now, customer_id=customer_id)
    else:
        subscription_id = _object_id(session.get("subscription"))
        if not subscription_id:
            logger.error(f"checkout.session.completed: No subscription on session_id={session_id}")
            return "skipped"

        stripe_subscription = stripe_service.retrieve_subscription(subscription_id)
        price_id = stripe_service.first_price_id(stripe_subscription.get("items"))
        period_start, period_end = subscription_period(stripe_subscription)
        event = BillingEvent.SUBSCRIPTION_CHECKOUT_COMPLETED
        inputs = TransitionInput(
            now=now,
            customer_id=customer_id,
            subscription_id=subscription_id,
            provider_status=stripe_subscription.get("status"),
            period_start=period_start,
            period_end=period_end,
            cancel_at_period_end=bool(stripe_subscription.get("cancel_at_period_end")),
        )

    tier = tier_service.get_tier_by_price_id(db, price_id)
    if not tier:
        logger.error(f"Could not find matching tier for price_id={price_id}, session_id={session_id}")
        return "skipped"

    if not user_id:
        expires_at = now + timedelta(days=config.PENDING_SUBSCRIPTION_TTL_DAYS)
        created = subscription_store.create_pending_subscription(
            db,
            session_id=session_id,
            tier_id=tier.id,
            subscription_id=subscription_id,
            customer_id=customer_id,
            customer_email=customer_email,
            expires_at=expires_at,
        )
        if created:
            logger.info(f"Created pending subscription: session_id={session_id}, tier={tier.name}")
        else:
            logger.info(f"Pending subscription already recorded for session_id={session_id}")
        return "pending_created"

    inputs.tier_id = tier.id
    subscription_store.apply_billing_event(db, event, user_id, inputs, event_created=event_created)
    logger.info(
        f"Checkout completed: user_id={user_id}, tier={tier.name}, "
        f"lifetime={is_lifetime}, subscription_id={subscription_id}"
    )
    return "applied"


def handle_subscription_updated(
    subscription: Dict, db: Session, event_created: Optional[datetime] = None
) -> str:
    """
    Handle customer.subscription.updated webhook event.

    Syncs status, period, cancellation flag and tier (when the new price is in
    the catalog). Records not yet keyed by the subscription are found through
    the user_id in the subscription metadata.
    """
    subscription_id = subscription.get("id")
    metadata_user_id = (subscription.get("metadata") or {}).get("user_id")
    status = subscription.get("status")
    price_id = stripe_service.first_price_id(subscription.get("items"))

    if status == SubscriptionStatus.CANCELED.value:
        tier = tier_service.get_free_tier(db)
    else:
        tier = tier_service.get_tier_by_price_id(db, price_id)
        if price_id and not tier:
            logger.warning(f"Unknown price_id={price_id} on subscription_id={subscription_id}; tier unchanged")

    period_start, period_end = subscription_period(subscription)
    inputs = TransitionInput(
        now=utcnow(),
        tier_id=tier.id if tier else None,
        subscription_id=subscription_id,
        provider_status=status,
        period_start=period_start,
        period_end=period_end,
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
    )

    if subscription_store.find_subscription(db, MatchKey.SUBSCRIPTION_ID, subscription_id):
        written = subscription_store.apply_billing_event(
            db, BillingEvent.SUBSCRIPTION_UPDATED, subscription_id, inputs, event_created=event_created
        )
        if not written:
            logger.info(f"Ignoring out-of-order update for subscription_id={subscription_id}")
            return "stale"
    elif metadata_user_id and subscription_store.get_subscription(db, metadata_user_id):
        changes = next_state(BillingEvent.SUBSCRIPTION_UPDATED, inputs)
        changes["stripe_subscription_id"] = subscription_id
        changes["is_lifetime"] = False
        written = subscription_store.update_subscriptions(
            db,
            MatchKey.USER_ID,
            metadata_user_id,
            changes,
            event_created=event_created,
            enforce_ordering=config.WEBHOOK_ENFORCE_EVENT_ORDERING,
        )
        if not written:
            logger.info(f"Ignoring out-of-order update for user_id={metadata_user_id}")
            return "stale"
    else:
        logger.error(f"No user ID found for subscription_id={subscription_id}")
        return "skipped"

    logger.info(
        f"Subscription updated: subscription_id={subscription_id}, status={status}, "
        f"tier={tier.name if tier else 'unchanged'}, cancel_at_period_end={inputs.cancel_at_period_end}"
    )
    return "applied"


def handle_subscription_deleted(
    subscription: Dict, db: Session, event_created: Optional[datetime] = None
) -> str:
    """
    Handle customer.subscription.deleted webhook event.

    Downgrades the record to the Free tier and clears the subscription ID.
    """
    subscription_id = subscription.get("id")
    free_tier = tier_service.get_free_tier(db)

    written = subscription_store.apply_billing_event(
        db,
        BillingEvent.SUBSCRIPTION_DELETED,
        subscription_id,
        TransitionInput(now=utcnow(), tier_id=free_tier.id, subscription_id=subscription_id),
        event_created=event_created,
    )

    if not written:
        logger.warning(f"customer.subscription.deleted: No record for subscription_id={subscription_id}")
        return "skipped"

    logger.info(f"Subscription deleted: subscription_id={subscription_id}, downgraded to {free_tier.name}")
    return "applied"


EVENT_HANDLERS: Dict[str, EventHandler] = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "charge.refunded": billing_invoice_handlers.handle_charge_refunded,
    "invoice.payment_failed": billing_invoice_handlers.handle_invoice_payment_failed,
}


def is_processed(db: Session, event_id: str) -> bool:
    """True if the event is already in the ledger."""
    return db.query(StripeEvent.id).filter(StripeEvent.event_id == event_id).first() is not None


def process_event(event: Dict, db: Session) -> str:
    """
    Apply one verified Stripe event.

    Returns:
        Outcome recorded in the ledger, or 'duplicate' for a redelivery
    """
    event_id = event.get("id")
    event_type = event.get("type")
    event_created = from_unix(event.get("created"))
    data_object = (event.get("data") or {}).get("object") or {}

    if event_id and is_processed(db, event_id):
        logger.info(f"Duplicate webhook event: {event_type}, id={event_id}")
        return "duplicate"

    handler = EVENT_HANDLERS.get(event_type)

    try:
        if handler is None:
            logger.info(f"Unhandled webhook event type: {event_type}")
            outcome = "ignored"
        else:
            outcome = handler(data_object, db, event_created)

        if event_id:
            insert_ignore(
                db,
                StripeEvent,
                {
                    "event_id": event_id,
                    "event_type": event_type,
                    "event_created": event_created,
                    "outcome": outcome,
                    "processed_at": utcnow(),
                },
                ["event_id"],
            )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error processing {event_type}, id={event_id}: {e}", exc_info=True)
        raise InternalError(f"Failed to process webhook event {event_id}")
    except Exception:
        # Nothing from a failed delivery is kept; Stripe retries it
        db.rollback()
        raise

    logger.info(f"Processed webhook event: {event_type}, id={event_id}, outcome={outcome}")
    return outcome


def process_webhook(request_body: bytes, signature: Optional[str], db: Session) -> Dict[str, Any]:
    """
    Verify a Stripe delivery and process it.

    Returns:
        Acknowledgement body for Stripe
    """
    event = stripe_service.verify_webhook(request_body, signature)
    outcome = process_event(event, db)
    return {"received": True, "outcome": outcome}
