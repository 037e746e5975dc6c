"""
Billing endpoints.

Checkout session creation and lookup, linking anonymous purchases to new
accounts, the customer portal, and the tier catalog.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.billing import (
    BillingErrorResponse,
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    CreatePortalSessionRequest,
    CreatePortalSessionResponse,
    LinkPendingSubscriptionRequest,
    LinkPendingSubscriptionResponse,
    RetrieveCheckoutSessionRequest,
    RetrieveCheckoutSessionResponse,
    TierResponse,
)
from app.services import billing_service, link_service, tier_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])

ERROR_RESPONSES = {
    400: {"model": BillingErrorResponse, "description": "Invalid request"},
    500: {"model": BillingErrorResponse, "description": "Stripe or database failure"},
}


@router.post(
    "/create-checkout-session",
    response_model=CreateCheckoutSessionResponse,
    status_code=status.HTTP_200_OK,
    responses=ERROR_RESPONSES,
)
def create_checkout_session(
    request: CreateCheckoutSessionRequest,
    db: Session = Depends(get_db),
):
    """
    Create a Stripe Checkout session.

    Signed-in buyers (user_id and user_email) are attached to their Stripe
    customer; anonymous buyers link the purchase after signup.
    """
    return billing_service.create_checkout_session(
        db,
        price_id=request.price_id,
        user_id=request.user_id,
        user_email=request.user_email,
        billing_interval=request.billing_interval,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
        origin=request.origin,
    )


@router.post(
    "/retrieve-checkout-session",
    response_model=RetrieveCheckoutSessionResponse,
    responses=ERROR_RESPONSES,
)
def retrieve_checkout_session(
    request: RetrieveCheckoutSessionRequest,
    db: Session = Depends(get_db),
):
    """Summarize a completed checkout session for the success page."""
    return billing_service.retrieve_checkout_session(db, request.session_id)


@router.post(
    "/link-pending-subscription",
    response_model=LinkPendingSubscriptionResponse,
    responses={
        **ERROR_RESPONSES,
        404: {"model": BillingErrorResponse, "description": "No pending subscription for the session"},
        409: {"model": BillingErrorResponse, "description": "Already linked"},
        410: {"model": BillingErrorResponse, "description": "Pending subscription expired or refunded"},
    },
)
def link_pending_subscription(
    request: LinkPendingSubscriptionRequest,
    db: Session = Depends(get_db),
):
    """Attach an anonymous purchase to the account created after checkout."""
    return link_service.link_pending_subscription(db, request.session_id, request.user_id)


@router.post(
    "/create-portal-session",
    response_model=CreatePortalSessionResponse,
    responses=ERROR_RESPONSES,
)
def create_portal_session(request: CreatePortalSessionRequest):
    """Create a Stripe customer portal session."""
    return billing_service.create_portal_session(request.customer_id, request.return_url)


@router.get("/tiers", response_model=List[TierResponse])
def list_tiers(db: Session = Depends(get_db)):
    """Active tiers in display order with their purchasable intervals."""
    return [
        TierResponse(
            id=tier.id,
            name=tier.name,
            max_funnels=tier.max_funnels,
            price_monthly=float(tier.price_monthly or 0),
            price_yearly=float(tier.price_yearly or 0),
            price_lifetime=float(tier.price_lifetime or 0),
            stripe_price_id_monthly=tier.stripe_price_id_monthly,
            stripe_price_id_yearly=tier.stripe_price_id_yearly,
            stripe_price_id_lifetime=tier.stripe_price_id_lifetime,
            intervals=tier_service.purchasable_intervals(tier),
        )
        for tier in tier_service.list_purchasable_tiers(db)
    ]
