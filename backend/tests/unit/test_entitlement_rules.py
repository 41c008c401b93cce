"""
Unit tests for the pure entitlement rules.

No database: profiles are plain namespaces carrying the Profile attributes.
"""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from core.entitlements import (
    AccessOutcome,
    decide_access,
    effective_tier,
    next_window_start,
    remaining_reads,
    tier_satisfies,
    window_lapsed,
)
from infrastructure.database.models.profile import SubscriptionTier

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
WINDOW = timedelta(days=30)


def _profile(
    tier: str = "free",
    expires_at=None,
    read_count: int = 0,
    reset_at=None,
) -> SimpleNamespace:
    return SimpleNamespace(
        subscription_tier=tier,
        subscription_expires_at=expires_at,
        premium_read_count=read_count,
        premium_read_reset_at=reset_at if reset_at is not None else NOW + timedelta(days=10),
    )


# ---------------------------------------------------------------------------
# effective_tier
# ---------------------------------------------------------------------------


class TestEffectiveTier:
    """Tier in force, derived from the stored tier and expiry."""

    def test_missing_profile_is_free(self):
        assert effective_tier(None, NOW) is SubscriptionTier.FREE

    def test_paid_tier_without_expiry_applies(self):
        assert effective_tier(_profile("premium"), NOW) is SubscriptionTier.PREMIUM

    def test_paid_tier_before_expiry_applies(self):
        profile = _profile("standard", expires_at=NOW + timedelta(seconds=1))
        assert effective_tier(profile, NOW) is SubscriptionTier.STANDARD

    def test_paid_tier_at_expiry_is_free(self):
        profile = _profile("premium", expires_at=NOW)
        assert effective_tier(profile, NOW) is SubscriptionTier.FREE

    def test_paid_tier_after_expiry_is_free(self):
        profile = _profile("premium", expires_at=NOW - timedelta(days=1))
        assert effective_tier(profile, NOW) is SubscriptionTier.FREE

    def test_unknown_stored_tier_is_free(self):
        assert effective_tier(_profile("platinum"), NOW) is SubscriptionTier.FREE

    def test_naive_expiry_is_read_as_utc(self):
        naive = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert effective_tier(_profile("standard", expires_at=naive), NOW) is SubscriptionTier.STANDARD

    def test_expiry_does_not_mutate_profile(self):
        profile = _profile("premium", expires_at=NOW - timedelta(days=1))
        effective_tier(profile, NOW)
        assert profile.subscription_tier == "premium"


# ---------------------------------------------------------------------------
# Quota window arithmetic
# ---------------------------------------------------------------------------


class TestRemainingReads:
    """Free reads left in the current window."""

    def test_open_window_subtracts_consumed(self):
        assert remaining_reads(_profile(read_count=1), NOW, 3) == 2

    def test_never_negative(self):
        assert remaining_reads(_profile(read_count=5), NOW, 3) == 0

    def test_lapsed_window_reports_full_allowance(self):
        profile = _profile(read_count=3, reset_at=NOW - timedelta(days=1))
        assert remaining_reads(profile, NOW, 3) == 3

    def test_window_lapses_exactly_at_boundary(self):
        profile = _profile(read_count=3, reset_at=NOW)
        assert window_lapsed(profile, NOW)
        assert remaining_reads(profile, NOW, 3) == 3

    def test_missing_profile_has_no_reads(self):
        assert remaining_reads(None, NOW, 3) == 0


class TestNextWindowStart:
    """Window boundaries stay anchored to the stored reset timestamp."""

    def test_recent_lapse_advances_one_window(self):
        reset_at = NOW - timedelta(days=1)
        assert next_window_start(reset_at, NOW, WINDOW) == reset_at + WINDOW

    def test_long_lapse_advances_whole_windows(self):
        reset_at = NOW - timedelta(days=45)
        assert next_window_start(reset_at, NOW, WINDOW) == NOW + timedelta(days=15)

    def test_boundary_equal_to_now_advances(self):
        assert next_window_start(NOW, NOW, WINDOW) == NOW + WINDOW

    def test_open_window_is_unchanged(self):
        reset_at = NOW + timedelta(days=3)
        assert next_window_start(reset_at, NOW, WINDOW) == reset_at

    def test_missing_boundary_starts_from_now(self):
        assert next_window_start(None, NOW, WINDOW) == NOW + WINDOW


# ---------------------------------------------------------------------------
# decide_access
# ---------------------------------------------------------------------------


class TestDecideAccess:
    """Mapping of visitor state and content flags to an outcome."""

    def test_non_premium_content_is_always_full(self):
        assert decide_access(False, SubscriptionTier.FREE, 0, False) is AccessOutcome.FULL_ACCESS

    def test_anonymous_visitor_is_asked_to_sign_up(self):
        outcome = decide_access(False, SubscriptionTier.FREE, 3, True)
        assert outcome is AccessOutcome.PREVIEW_SIGN_UP

    @pytest.mark.parametrize("tier", [SubscriptionTier.STANDARD, SubscriptionTier.PREMIUM])
    def test_paid_tier_reads_standard_content(self, tier):
        assert decide_access(True, tier, 0, True) is AccessOutcome.FULL_ACCESS

    def test_premium_reads_premium_only_content(self):
        outcome = decide_access(
            True, SubscriptionTier.PREMIUM, 0, True, required_tier=SubscriptionTier.PREMIUM
        )
        assert outcome is AccessOutcome.FULL_ACCESS

    def test_standard_on_premium_only_content_must_upgrade(self):
        outcome = decide_access(
            True, SubscriptionTier.STANDARD, 0, True, required_tier=SubscriptionTier.PREMIUM
        )
        assert outcome is AccessOutcome.PREVIEW_UPGRADE

    def test_free_with_reads_on_premium_only_content_must_upgrade(self):
        outcome = decide_access(
            True, SubscriptionTier.FREE, 3, True, required_tier=SubscriptionTier.PREMIUM
        )
        assert outcome is AccessOutcome.PREVIEW_UPGRADE

    def test_free_without_reads_is_quota_exhausted(self):
        outcome = decide_access(True, SubscriptionTier.FREE, 0, True)
        assert outcome is AccessOutcome.PREVIEW_QUOTA_EXHAUSTED

    def test_free_with_reads_is_metered(self):
        outcome = decide_access(True, SubscriptionTier.FREE, 1, True)
        assert outcome is AccessOutcome.FULL_ACCESS_METERED
        assert not outcome.is_preview

    def test_preview_outcomes_are_flagged(self):
        previews = {o for o in AccessOutcome if o.is_preview}
        assert previews == {
            AccessOutcome.PREVIEW_SIGN_UP,
            AccessOutcome.PREVIEW_QUOTA_EXHAUSTED,
            AccessOutcome.PREVIEW_UPGRADE,
        }


def test_tier_ordering():
    assert tier_satisfies(SubscriptionTier.PREMIUM, SubscriptionTier.STANDARD)
    assert not tier_satisfies(SubscriptionTier.STANDARD, SubscriptionTier.PREMIUM)
    assert not tier_satisfies(SubscriptionTier.FREE, SubscriptionTier.STANDARD)
