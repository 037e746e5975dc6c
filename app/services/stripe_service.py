"""
Stripe service for customers, checkout, billing portal, and webhook verification.

Every call into the Stripe SDK goes through this module so the rest of the
billing core sees plain values and ExternalServiceError instead of SDK errors.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe

from app.core import config
from app.core.errors import ExternalServiceError, InternalError, WebhookVerificationError

logger = logging.getLogger(__name__)

# Initialize Stripe client
if config.STRIPE_SECRET_KEY:
    stripe.api_key = config.STRIPE_SECRET_KEY
    if config.STRIPE_API_VERSION:
        stripe.api_version = config.STRIPE_API_VERSION
else:
    logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")


def _provider_error(action: str, error: Exception) -> ExternalServiceError:
    logger.error(f"Stripe error {action}: {error}")
    status_code = getattr(error, "http_status", None) or 500
    message = getattr(error, "user_message", None) or str(error)
    return ExternalServiceError(f"Failed to {action}: {message}", status_code=status_code)


def first_price_id(items: Optional[Dict[str, Any]]) -> Optional[str]:
    """Price ID of the first entry in a Stripe list of line/subscription items."""
    data = (items or {}).get("data") or []
    if not data:
        return None
    price = data[0].get("price") or {}
    return price.get("id")


def create_customer(email: str, user_id: str) -> str:
    """
    Create a Stripe customer tied to an application user.

    Returns:
        Stripe customer ID
    """
    try:
        customer = stripe.Customer.create(
            email=email,
            metadata={"user_id": str(user_id)},
        )
    except stripe.error.StripeError as e:
        raise _provider_error("create customer", e)

    logger.info(f"Created Stripe customer: customer_id={customer['id']}, user_id={user_id}")
    return customer["id"]


def create_checkout_session(params: Dict[str, Any]) -> Dict[str, str]:
    """
    Create a Stripe Checkout session.

    Args:
        params: Session parameters as accepted by stripe.checkout.Session.create

    Returns:
        Dictionary with 'url' and 'session_id'
    """
    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.error.StripeError as e:
        raise _provider_error("create checkout session", e)

    logger.info(f"Created checkout session: session_id={session['id']}, mode={params.get('mode')}")
    return {"url": session["url"], "session_id": session["id"]}


def retrieve_checkout_session(session_id: str):
    """Retrieve a Checkout session."""
    try:
        return stripe.checkout.Session.retrieve(session_id)
    except stripe.error.StripeError as e:
        raise _provider_error("retrieve checkout session", e)


def get_checkout_price_id(session_id: str) -> Optional[str]:
    """Price ID of the first line item of a Checkout session."""
    try:
        line_items = stripe.checkout.Session.list_line_items(session_id, limit=1)
    except stripe.error.StripeError as e:
        raise _provider_error("list checkout line items", e)
    return first_price_id(line_items)


def retrieve_subscription(subscription_id: str):
    """Retrieve a recurring subscription."""
    try:
        return stripe.Subscription.retrieve(subscription_id)
    except stripe.error.StripeError as e:
        raise _provider_error("retrieve subscription", e)


def create_billing_portal_session(customer_id: str, return_url: str) -> Dict[str, str]:
    """
    Create Stripe Billing Portal session for managing subscription.

    Returns:
        Dictionary with 'url' key containing portal session URL
    """
    try:
        session = stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=return_url,
        )
    except stripe.error.StripeError as e:
        raise _provider_error("create portal session", e)

    logger.info(f"Created billing portal session for customer_id={customer_id}")
    return {"url": session["url"]}


def verify_webhook(request_body: bytes, signature: Optional[str]):
    """
    Verify and parse Stripe webhook event.

    Args:
        request_body: Raw request body bytes
        signature: Stripe-Signature header value

    Returns:
        Verified event as a plain dictionary

    Raises:
        WebhookVerificationError: If the header is missing or verification fails
    """
    if not signature:
        logger.error("No Stripe signature found in request")
        raise WebhookVerificationError("Missing stripe-signature header")

    if not config.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        raise InternalError("Webhook secret not configured")

    try:
        stripe.Webhook.construct_event(
            request_body, signature, config.STRIPE_WEBHOOK_SECRET
        )
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise WebhookVerificationError(f"Invalid webhook payload: {e}")
    except stripe.error.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise WebhookVerificationError(f"Webhook signature verification failed: {e}")

    # Handlers work on plain dictionaries; the body is trusted once the signature checks out
    event = json.loads(request_body)
    logger.info(f"Verified webhook event: {event.get('type')}, id={event.get('id')}")
    return event
