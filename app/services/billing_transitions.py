"""
Billing state transition table.

Each billing event maps to one Transition: which key locates the subscription
record, whether the record may be created, which current statuses block the
transition, and the column values it writes. The webhook processor and the
linker only gather inputs and hand the resulting changes to the store.
"""
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Optional

from app.core.timeutils import LIFETIME_PERIOD_END
from app.db.models.user_subscription import DOWNGRADED_STATUSES, SubscriptionStatus


class BillingEvent(str, enum.Enum):
    LIFETIME_CHECKOUT_COMPLETED = "lifetime_checkout_completed"
    SUBSCRIPTION_CHECKOUT_COMPLETED = "subscription_checkout_completed"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    CHARGE_REFUNDED = "charge_refunded"
    INVOICE_PAYMENT_FAILED = "invoice_payment_failed"
    PENDING_SUBSCRIPTION_LINKED = "pending_subscription_linked"


class MatchKey(str, enum.Enum):
    USER_ID = "user_id"
    SUBSCRIPTION_ID = "stripe_subscription_id"
    CUSTOMER_ID = "stripe_customer_id"


@dataclass
class TransitionInput:
    """Values gathered from the Stripe payload (and catalog) for one event."""

    now: datetime
    tier_id: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    provider_status: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False


@dataclass(frozen=True)
class Transition:
    event: BillingEvent
    match_on: MatchKey
    creates_record: bool
    build: Callable[[TransitionInput], Dict[str, Any]]
    blocked_from: FrozenSet[str] = frozenset()

    def applies_to(self, current_status: Optional[str]) -> bool:
        return current_status not in self.blocked_from


def _lifetime_checkout(inputs: TransitionInput) -> Dict[str, Any]:
    changes = {
        "tier_id": inputs.tier_id,
        "stripe_subscription_id": None,
        "status": SubscriptionStatus.ACTIVE.value,
        "current_period_start": inputs.now,
        "current_period_end": LIFETIME_PERIOD_END,
        "cancel_at_period_end": False,
        "is_lifetime": True,
    }
    if inputs.customer_id:
        changes["stripe_customer_id"] = inputs.customer_id
    return changes


def _subscription_checkout(inputs: TransitionInput) -> Dict[str, Any]:
    changes = {
        "tier_id": inputs.tier_id,
        "stripe_subscription_id": inputs.subscription_id,
        "status": inputs.provider_status or SubscriptionStatus.ACTIVE.value,
        "current_period_start": inputs.period_start,
        "current_period_end": inputs.period_end,
        "cancel_at_period_end": bool(inputs.cancel_at_period_end),
        "is_lifetime": False,
    }
    if inputs.customer_id:
        changes["stripe_customer_id"] = inputs.customer_id
    return changes


def _subscription_updated(inputs: TransitionInput) -> Dict[str, Any]:
    changes: Dict[str, Any] = {
        "status": inputs.provider_status,
        "cancel_at_period_end": bool(inputs.cancel_at_period_end),
    }
    if inputs.period_start is not None:
        changes["current_period_start"] = inputs.period_start
    if inputs.period_end is not None:
        changes["current_period_end"] = inputs.period_end
    # Unknown prices leave the tier alone
    if inputs.tier_id:
        changes["tier_id"] = inputs.tier_id
    return changes


def _subscription_deleted(inputs: TransitionInput) -> Dict[str, Any]:
    return {
        "status": SubscriptionStatus.CANCELED.value,
        "tier_id": inputs.tier_id,
        "stripe_subscription_id": None,
        "cancel_at_period_end": False,
        "is_lifetime": False,
    }


def _charge_refunded(inputs: TransitionInput) -> Dict[str, Any]:
    return {
        "status": SubscriptionStatus.REFUNDED.value,
        "tier_id": inputs.tier_id,
        "is_lifetime": False,
    }


def _invoice_payment_failed(inputs: TransitionInput) -> Dict[str, Any]:
    return {"status": SubscriptionStatus.PAST_DUE.value}


def _pending_linked(inputs: TransitionInput) -> Dict[str, Any]:
    # No subscription id on the pending row means a one-time payment
    is_lifetime = not inputs.subscription_id
    return {
        "tier_id": inputs.tier_id,
        "stripe_subscription_id": inputs.subscription_id,
        "stripe_customer_id": inputs.customer_id,
        "status": SubscriptionStatus.ACTIVE.value,
        "current_period_start": inputs.now,
        "current_period_end": LIFETIME_PERIOD_END if is_lifetime else inputs.period_end,
        "cancel_at_period_end": False,
        "is_lifetime": is_lifetime,
    }


TRANSITIONS: Dict[BillingEvent, Transition] = {
    BillingEvent.LIFETIME_CHECKOUT_COMPLETED: Transition(
        event=BillingEvent.LIFETIME_CHECKOUT_COMPLETED,
        match_on=MatchKey.USER_ID,
        creates_record=True,
        build=_lifetime_checkout,
    ),
    BillingEvent.SUBSCRIPTION_CHECKOUT_COMPLETED: Transition(
        event=BillingEvent.SUBSCRIPTION_CHECKOUT_COMPLETED,
        match_on=MatchKey.USER_ID,
        creates_record=True,
        build=_subscription_checkout,
    ),
    BillingEvent.SUBSCRIPTION_UPDATED: Transition(
        event=BillingEvent.SUBSCRIPTION_UPDATED,
        match_on=MatchKey.SUBSCRIPTION_ID,
        creates_record=False,
        build=_subscription_updated,
    ),
    BillingEvent.SUBSCRIPTION_DELETED: Transition(
        event=BillingEvent.SUBSCRIPTION_DELETED,
        match_on=MatchKey.SUBSCRIPTION_ID,
        creates_record=False,
        build=_subscription_deleted,
    ),
    BillingEvent.CHARGE_REFUNDED: Transition(
        event=BillingEvent.CHARGE_REFUNDED,
        match_on=MatchKey.CUSTOMER_ID,
        creates_record=False,
        build=_charge_refunded,
    ),
    BillingEvent.INVOICE_PAYMENT_FAILED: Transition(
        event=BillingEvent.INVOICE_PAYMENT_FAILED,
        match_on=MatchKey.SUBSCRIPTION_ID,
        creates_record=False,
        build=_invoice_payment_failed,
        # A failed renewal must not resurrect a downgraded record
        blocked_from=frozenset(DOWNGRADED_STATUSES),
    ),
    BillingEvent.PENDING_SUBSCRIPTION_LINKED: Transition(
        event=BillingEvent.PENDING_SUBSCRIPTION_LINKED,
        match_on=MatchKey.USER_ID,
        creates_record=True,
        build=_pending_linked,
    ),
}


def next_state(
    event: BillingEvent,
    inputs: TransitionInput,
    current_status: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Compute the column values an event writes.

    Args:
        event: Billing event
        inputs: Values gathered for the event
        current_status: Status of the existing record, if any

    Returns:
        Column changes, or None when the current status blocks the transition
    """
    transition = TRANSITIONS[event]
    if not transition.applies_to(current_status):
        return None
    return transition.build(inputs)
