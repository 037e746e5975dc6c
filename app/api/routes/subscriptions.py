"""
Subscription provisioning and entitlement endpoints.
"""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.auth_dependency import get_current_user_id
from app.db.session import get_db
from app.schemas.subscription import (
    EntitlementResponse,
    ProvisionSubscriptionRequest,
    ProvisionSubscriptionResponse,
)
from app.services.entitlement_service import get_entitlements
from app.services.provisioning_service import provision_subscription

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Subscriptions"])


@router.post("/subscriptions/provision", response_model=ProvisionSubscriptionResponse)
def provision(
    request: ProvisionSubscriptionRequest,
    db: Session = Depends(get_db),
):
    """
    Create the subscription record of a new account.

    Free tier by default; a valid registration_token selects its tier instead.
    Calling it again for an existing account without a token changes nothing.
    """
    return provision_subscription(db, request.user_id, request.registration_token)


@router.get("/me/subscription", response_model=EntitlementResponse, status_code=status.HTTP_200_OK)
def get_my_subscription(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Get the authenticated user's tier and funnel limits.

    Returns:
    - tier and status of the subscription record
    - funnel_limit (-1 for unlimited), funnel_count
    - can_create_funnel, is_over_limit

    Requires authentication via Bearer token.
    """
    entitlements = get_entitlements(db, user_id)
    logger.debug(f"Subscription summary requested: user_id={user_id}, tier={entitlements['tier_name']}")
    return entitlements
