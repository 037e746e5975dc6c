"""
Billing service for Stripe Checkout.

Handles checkout session creation for signed-in and anonymous buyers, checkout
session lookups for the success page, and customer portal sessions.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import ExternalServiceError, ValidationError
from app.services import stripe_service, subscription_store, tier_service

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def get_checkout_mode(billing_interval: str) -> str:
    """Stripe Checkout mode for a billing interval."""
    if billing_interval not in tier_service.BILLING_INTERVALS:
        raise ValidationError(
            f"Invalid billing_interval: {billing_interval}. Must be one of {', '.join(tier_service.BILLING_INTERVALS)}"
        )
    return "payment" if billing_interval == "lifetime" else "subscription"


def _default_redirects(base_url: str, authenticated: bool) -> Dict[str, str]:
    if authenticated:
        return {
            "success_url": f"{base_url}/profile?checkout=success&session_id={CHECKOUT_SESSION_PLACEHOLDER}",
            "cancel_url": f"{base_url}/profile?checkout=canceled",
        }
    # No account page yet; the success page links the purchase after signup
    return {
        "success_url": f"{base_url}/checkout/success?session_id={CHECKOUT_SESSION_PLACEHOLDER}",
        "cancel_url": f"{base_url}/?checkout=canceled",
    }


def get_or_create_customer(db: Session, user_id: str, user_email: str) -> str:
    """
    Reuse the user's Stripe customer or create one.

    A new customer ID is remembered on the user's existing subscription record;
    no subscription record is created here.
    """
    customer_id = subscription_store.get_customer_id_for_user(db, user_id)
    if customer_id:
        return customer_id

    customer_id = stripe_service.create_customer(user_email, user_id)
    if subscription_store.set_customer_id(db, user_id, customer_id):
        db.commit()
    else:
        logger.info(f"No subscription record to hold customer_id={customer_id} for user_id={user_id}")
    return customer_id


def create_checkout_session(
    db: Session,
    price_id: Optional[str],
    user_id: Optional[str] = None,
    user_email: Optional[str] = None,
    billing_interval: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
    origin: Optional[str] = None,
) -> Dict[str, str]:
    """
    Create a Stripe Checkout session for a tier price.

    Args:
        db: Database session
        price_id: Stripe price ID to purchase
        user_id: Signed-in user's ID (anonymous checkout when omitted)
        user_email: Signed-in user's email, required with user_id
        billing_interval: monthly, yearly or lifetime (defaults to monthly)
        success_url: Redirect after payment (defaults depend on sign-in state)
        cancel_url: Redirect if the buyer backs out
        origin: Base URL for default redirects (defaults to FRONTEND_URL)

    Returns:
        Dictionary with 'url' and 'session_id'
    """
    if not price_id:
        raise ValidationError("Missing required parameter: price_id")

    billing_interval = billing_interval or "monthly"
    mode = get_checkout_mode(billing_interval)
    is_lifetime = mode == "payment"
    if bool(user_id) != bool(user_email):
        raise ValidationError("user_id and user_email must be supplied together")
    authenticated = bool(user_id)
    base_url = (origin or config.FRONTEND_URL).rstrip("/")
    redirects = _default_redirects(base_url, authenticated)

    params: Dict[str, Any] = {
        "payment_method_types": ["card"],
        "line_items": [{"price": price_id, "quantity": 1}],
        "mode": mode,
        "success_url": success_url or redirects["success_url"],
        "cancel_url": cancel_url or redirects["cancel_url"],
        "metadata": {
            "billing_interval": billing_interval,
            "is_lifetime": "true" if is_lifetime else "false",
        },
    }

    if authenticated:
        params["customer"] = get_or_create_customer(db, user_id, user_email)
        params["client_reference_id"] = user_id
        params["metadata"]["user_id"] = user_id
        if not is_lifetime:
            params["subscription_data"] = {"metadata": {"user_id": user_id}}
    elif is_lifetime:
        # Payment mode only creates a customer on request; refunds are matched by customer
        params["customer_creation"] = "always"

    logger.info(
        f"Creating checkout session: user_id={user_id or 'anonymous'}, price_id={price_id}, interval={billing_interval}"
    )
    return stripe_service.create_checkout_session(params)


def retrieve_checkout_session(db: Session, session_id: Optional[str]) -> Dict[str, Optional[str]]:
    """
    Summarize a Checkout session for the success page.

    Returns:
        customer_email, payment_status, subscription_id, tier_name, tier_id
    """
    if not session_id or not session_id.strip():
        raise ValidationError("Missing required parameter: session_id")

    session = stripe_service.retrieve_checkout_session(session_id)

    tier = None
    try:
        price_id = stripe_service.get_checkout_price_id(session_id)
    except ExternalServiceError as e:
        # Tier details are optional on the success page
        logger.warning(f"Could not read line items for session_id={session_id}: {e}")
        price_id = None
    if price_id:
        tier = tier_service.get_tier_by_price_id(db, price_id)

    customer_details = session.get("customer_details") or {}
    response = {
        "customer_email": customer_details.get("email") or session.get("customer_email"),
        "payment_status": session.get("payment_status") or "unknown",
        "subscription_id": session.get("subscription"),
        "tier_name": tier.name if tier else None,
        "tier_id": tier.id if tier else None,
    }

    logger.info(
        f"Retrieved checkout session: session_id={session_id}, payment_status={response['payment_status']}, "
        f"tier={response['tier_name']}"
    )
    return response


def create_portal_session(customer_id: Optional[str], return_url: Optional[str]) -> Dict[str, str]:
    """Create a Stripe customer portal session."""
    if not customer_id or not return_url:
        raise ValidationError("Missing required parameters: customer_id, return_url")
    return stripe_service.create_billing_portal_session(customer_id, return_url)
