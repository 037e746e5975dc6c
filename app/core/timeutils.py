"""
Timestamp helpers.

All billing timestamps are stored as naive UTC datetimes.
"""
from datetime import datetime, timezone
from typing import Optional

# Period end recorded for lifetime purchases ("never expires")
LIFETIME_PERIOD_END = datetime(2099, 12, 31, 23, 59, 59)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_unix(timestamp: Optional[int]) -> Optional[datetime]:
    """Convert a Stripe epoch-seconds value to a naive UTC datetime."""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).replace(tzinfo=None)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a stored timestamp as ISO-8601 with a Z suffix."""
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat() + "Z"
