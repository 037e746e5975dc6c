"""
Pydantic schemas for billing endpoints.
"""
from typing import List, Optional
from pydantic import BaseModel, Field


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating checkout session."""
    price_id: str = Field(..., description="Stripe price ID of the tier interval to buy")
    user_id: Optional[str] = Field(None, description="Signed-in user's ID; omit for anonymous checkout")
    user_email: Optional[str] = Field(None, description="Signed-in user's email")
    billing_interval: Optional[str] = Field(
        None, description="monthly, yearly or lifetime", pattern="^(monthly|yearly|lifetime)$"
    )
    success_url: Optional[str] = Field(None, description="URL to redirect after successful payment")
    cancel_url: Optional[str] = Field(None, description="URL to redirect if payment is canceled")
    origin: Optional[str] = Field(None, description="Base URL for the default redirects")

    class Config:
        json_schema_extra = {
            "example": {
                "price_id": "price_pro_monthly",
                "user_id": "5b0c1c1e-2f7a-4d8e-9a55-0f3f6c1d2e11",
                "user_email": "owner@example.com",
                "billing_interval": "monthly",
            }
        }


class CreateCheckoutSessionResponse(BaseModel):
    """Response schema for checkout session creation."""
    url: str = Field(..., description="Stripe checkout session URL")
    session_id: str = Field(..., description="Stripe checkout session ID")

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://checkout.stripe.com/c/pay/cs_test_...",
                "session_id": "cs_test_..."
            }
        }


class RetrieveCheckoutSessionRequest(BaseModel):
    """Request schema for looking up a checkout session."""
    session_id: str = Field(..., description="Stripe checkout session ID")


class RetrieveCheckoutSessionResponse(BaseModel):
    """Checkout session summary for the success page."""
    customer_email: Optional[str] = None
    payment_status: str
    subscription_id: Optional[str] = None
    tier_name: Optional[str] = None
    tier_id: Optional[str] = None


class LinkPendingSubscriptionRequest(BaseModel):
    """Request schema for linking an anonymous purchase to a new account."""
    session_id: str = Field(..., description="Stripe checkout session ID of the purchase")
    user_id: str = Field(..., description="ID of the account created after checkout")

    class Config:
        json_schema_extra = {
            "example": {
                "session_id": "cs_test_...",
                "user_id": "5b0c1c1e-2f7a-4d8e-9a55-0f3f6c1d2e11"
            }
        }


class LinkPendingSubscriptionResponse(BaseModel):
    success: bool
    tier_id: str
    is_lifetime: bool


class CreatePortalSessionRequest(BaseModel):
    """Request schema for creating portal session."""
    customer_id: str = Field(..., description="Stripe customer ID")
    return_url: str = Field(..., description="URL to return to after portal session")

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "cus_...",
                "return_url": "https://app.example.com/profile"
            }
        }


class CreatePortalSessionResponse(BaseModel):
    """Response schema for portal session creation."""
    url: str = Field(..., description="Stripe customer portal URL")

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://billing.stripe.com/p/session/..."
            }
        }


class TierResponse(BaseModel):
    """A purchasable tier."""
    id: str
    name: str
    max_funnels: int
    price_monthly: float
    price_yearly: float
    price_lifetime: float
    stripe_price_id_monthly: Optional[str] = None
    stripe_price_id_yearly: Optional[str] = None
    stripe_price_id_lifetime: Optional[str] = None
    intervals: List[str] = Field(default_factory=list, description="Billing intervals with a Stripe price")


class BillingErrorResponse(BaseModel):
    """Error response schema for billing operations."""
    error: str = Field(..., description="Error message")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Pending subscription has expired"
            }
        }
