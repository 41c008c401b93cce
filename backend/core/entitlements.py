"""
Pure entitlement rules.

Nothing in this module performs I/O: every function takes a profile-like
object (anything with the Profile attributes) and the current time, so the
rules can run on every request and be tested without a database.
"""

from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, Optional

from infrastructure.database.models.base import as_utc
from infrastructure.database.models.profile import SubscriptionTier

# Tier ordering for "tier meets requirement" checks
TIER_RANK = {
    SubscriptionTier.FREE: 0,
    SubscriptionTier.STANDARD: 1,
    SubscriptionTier.PREMIUM: 2,
}

PAID_TIERS = frozenset({SubscriptionTier.STANDARD, SubscriptionTier.PREMIUM})


class AccessOutcome(StrEnum):
    """What the renderer should show for a content item."""

    FULL_ACCESS = "full_access"
    FULL_ACCESS_METERED = "full_access_metered"  # full text plus "N reads remaining"
    PREVIEW_SIGN_UP = "preview_sign_up"
    PREVIEW_QUOTA_EXHAUSTED = "preview_quota_exhausted"
    PREVIEW_UPGRADE = "preview_upgrade"

    @property
    def is_preview(self) -> bool:
        return self.value.startswith("preview_")


def _parse_tier(value: Any) -> SubscriptionTier:
    try:
        return SubscriptionTier(value)
    except ValueError:
        return SubscriptionTier.FREE


def effective_tier(profile: Optional[Any], now: Optional[datetime] = None) -> SubscriptionTier:
    """
    Resolve the tier actually in force for a profile.

    A paid tier applies while ``subscription_expires_at`` is unset or still in
    the future; afterwards the profile is treated as free without any write.
    A missing profile or an unrecognised stored tier resolves to free.
    """
    if profile is None:
        return SubscriptionTier.FREE

    tier = _parse_tier(profile.subscription_tier)
    if tier not in PAID_TIERS:
        return SubscriptionTier.FREE

    now = now or datetime.now(UTC)
    expires_at = as_utc(profile.subscription_expires_at)
    if expires_at is None or expires_at > now:
        return tier
    return SubscriptionTier.FREE


def window_lapsed(profile: Any, now: datetime) -> bool:
    """True once ``now`` has reached the profile's read-window boundary."""
    reset_at = as_utc(profile.premium_read_reset_at)
    return reset_at is None or now >= reset_at


def remaining_reads(profile: Optional[Any], now: datetime, allowance: int) -> int:
    """
    Free premium reads left in the current window.

    A lapsed window reports the full allowance without persisting the reset;
    the next consumption performs it.
    """
    if profile is None:
        return 0
    if window_lapsed(profile, now):
        return allowance
    return max(0, allowance - (profile.premium_read_count or 0))


def next_window_start(reset_at: Optional[datetime], now: datetime, window: timedelta) -> datetime:
    """
    Advance a lapsed window boundary by whole windows until it lies after ``now``.

    Keeps the boundary anchored to the stored timestamp rather than to the
    calendar or to the moment of the read.
    """
    reset_at = as_utc(reset_at)
    if reset_at is None:
        return now + window
    if reset_at > now:
        return reset_at
    elapsed_windows = (now - reset_at) // window + 1
    return reset_at + elapsed_windows * window


def tier_satisfies(tier: SubscriptionTier, required: SubscriptionTier) -> bool:
    return TIER_RANK[tier] >= TIER_RANK[required]


def decide_access(
    is_authenticated: bool,
    tier: SubscriptionTier,
    reads_left: int,
    is_premium: bool,
    required_tier: SubscriptionTier = SubscriptionTier.STANDARD,
) -> AccessOutcome:
    """
    Map visitor state and content flags to a single access outcome.

    Metered free reads unlock standard-level premium content only; content
    that requires the premium tier always asks free and standard visitors to
    upgrade.
    """
    if not is_premium:
        return AccessOutcome.FULL_ACCESS
    if not is_authenticated:
        return AccessOutcome.PREVIEW_SIGN_UP
    if tier_satisfies(tier, required_tier):
        return AccessOutcome.FULL_ACCESS
    if tier in PAID_TIERS or required_tier is SubscriptionTier.PREMIUM:
        return AccessOutcome.PREVIEW_UPGRADE
    if reads_left <= 0:
        return AccessOutcome.PREVIEW_QUOTA_EXHAUSTED
    return AccessOutcome.FULL_ACCESS_METERED
