"""
Invoice and charge event handlers for Stripe webhooks.

Handles charge.refunded and invoice.payment_failed events.
"""
import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.core.timeutils import utcnow
from app.services import subscription_store, tier_service
from app.services.billing_transitions import BillingEvent, TransitionInput

logger = logging.getLogger(__name__)


def invoice_subscription_id(invoice: Dict) -> Optional[str]:
    """Subscription ID of an invoice, on either the legacy or the parent-details shape."""
    subscription_id = invoice.get("subscription")
    if isinstance(subscription_id, dict):
        subscription_id = subscription_id.get("id")
    if subscription_id:
        return subscription_id

    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    subscription_id = details.get("subscription")
    if isinstance(subscription_id, dict):
        subscription_id = subscription_id.get("id")
    return subscription_id


def handle_charge_refunded(charge: Dict, db: Session, event_created: Optional[datetime] = None) -> str:
    """
    Handle charge.refunded webhook event.

    Downgrades every record of the refunded customer to the Free tier with
    status refunded. Anonymous purchases not yet linked are retired.
    """
    customer_id = charge.get("customer")
    if isinstance(customer_id, dict):
        customer_id = customer_id.get("id")

    if not customer_id:
        logger.warning(f"charge.refunded: No customer on charge_id={charge.get('id')}")
        return "skipped"

    free_tier = tier_service.get_free_tier(db)
    written = subscription_store.apply_billing_event(
        db,
        BillingEvent.CHARGE_REFUNDED,
        customer_id,
        TransitionInput(now=utcnow(), tier_id=free_tier.id),
        event_created=event_created,
    )

    retired = subscription_store.mark_pending_refunded(db, customer_id)

    if not written and not retired:
        logger.warning(f"charge.refunded: No subscription record for customer_id={customer_id}")
        return "skipped"

    logger.info(
        f"Charge refunded: customer_id={customer_id}, records downgraded={written}, pending retired={retired}"
    )
    return "applied"


def handle_invoice_payment_failed(invoice: Dict, db: Session, event_created: Optional[datetime] = None) -> str:
    """
    Handle invoice.payment_failed webhook event.

    Updates subscription status to past_due unless the record was already
    canceled or refunded.
    """
    subscription_id = invoice_subscription_id(invoice)

    if not subscription_id:
        logger.warning("invoice.payment_failed: No subscription ID in invoice")
        return "skipped"

    written = subscription_store.apply_billing_event(
        db,
        BillingEvent.INVOICE_PAYMENT_FAILED,
        subscription_id,
        TransitionInput(now=utcnow(), subscription_id=subscription_id),
        event_created=event_created,
    )

    if not written:
        logger.warning(f"invoice.payment_failed: No active record for subscription_id={subscription_id}")
        return "skipped"

    logger.warning(f"Invoice payment failed: subscription_id={subscription_id}, customer_id={invoice.get('customer')}")
    return "applied"
