"""
Pydantic schemas for subscription provisioning and entitlements.
"""
from typing import Optional
from pydantic import BaseModel, Field


class ProvisionSubscriptionRequest(BaseModel):
    """Request schema for provisioning a new account."""
    user_id: str = Field(..., description="New account's user ID")
    registration_token: Optional[str] = Field(None, description="Token granting a specific tier")


class SubscriptionSummary(BaseModel):
    user_id: str
    tier_id: Optional[str] = None
    tier_name: Optional[str] = None
    status: Optional[str] = None
    is_lifetime: bool = False
    cancel_at_period_end: bool = False
    current_period_start: Optional[str] = None
    current_period_end: Optional[str] = None
    stripe_customer_id: Optional[str] = None


class ProvisionSubscriptionResponse(SubscriptionSummary):
    created: bool


class EntitlementResponse(SubscriptionSummary):
    """Subscription plus funnel limits for the signed-in user."""
    funnel_limit: int = Field(..., description="Funnels allowed; -1 means unlimited")
    is_unlimited: bool
    funnel_count: int
    can_create_funnel: bool
    is_over_limit: bool
