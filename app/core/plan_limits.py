"""
Funnel limits per tier.

A tier's max_funnels is the single source of truth. -1 means unlimited.
"""
from typing import Optional

from app.core import config

UNLIMITED = -1


def get_funnel_limit(max_funnels: Optional[int]) -> int:
    """
    Funnel limit for a tier.

    Args:
        max_funnels: Tier's max_funnels, or None when the user has no tier

    Returns:
        Number of funnels allowed, or UNLIMITED
    """
    if max_funnels is None:
        return config.DEFAULT_FUNNEL_LIMIT
    return max_funnels


def is_unlimited(limit: int) -> bool:
    """Check if a limit means unlimited funnels."""
    return limit == UNLIMITED


def can_create_funnel(limit: int, funnel_count: int) -> bool:
    """Check if one more funnel fits under the limit."""
    return is_unlimited(limit) or funnel_count < limit


def is_over_limit(limit: int, funnel_count: int) -> bool:
    """Check if existing funnels exceed the limit, e.g. after a downgrade."""
    return not is_unlimited(limit) and funnel_count > limit
