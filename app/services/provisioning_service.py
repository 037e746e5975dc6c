"""
Subscription provisioning for new accounts.

Every account starts with a record: the Free tier by default, or the tier of
a valid registration token.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.core.timeutils import utcnow
from app.db.models.user_subscription import SubscriptionStatus
from app.services import subscription_store, tier_service
from app.services.entitlement_service import subscription_summary

logger = logging.getLogger(__name__)


def provision_subscription(
    db: Session,
    user_id: Optional[str],
    registration_token: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Give a new account its subscription record.

    Args:
        db: Database session
        user_id: New account's user ID
        registration_token: Optional token granting a specific tier

    Returns:
        Subscription summary with a 'created' flag

    Raises:
        ValidationError: Missing user_id or unknown registration token
    """
    if not user_id:
        raise ValidationError("Missing required parameter: user_id")

    if registration_token:
        tier = tier_service.get_tier_by_registration_token(db, registration_token)
        if not tier:
            raise ValidationError("Invalid registration token")

        created = subscription_store.get_subscription(db, user_id) is None
        subscription_store.upsert_subscription(
            db,
            user_id,
            {
                "tier_id": tier.id,
                "status": SubscriptionStatus.ACTIVE.value,
                "current_period_start": utcnow(),
                "cancel_at_period_end": False,
                "is_lifetime": False,
            },
        )
        logger.info(f"Provisioned user_id={user_id} on tier={tier.name} via registration token")
    else:
        tier = tier_service.get_free_tier(db)
        created = subscription_store.ensure_default_subscription(db, user_id, tier.id)
        if created:
            logger.info(f"Provisioned user_id={user_id} on tier={tier.name}")
        else:
            logger.info(f"Subscription already exists for user_id={user_id}")

    db.commit()

    record = subscription_store.get_subscription(db, user_id)
    response = subscription_summary(record, tier_service.get_tier(db, record.tier_id))
    response.update({"user_id": user_id, "created": created})
    return response
