"""
Entitlement snapshot for the current visitor.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.entitlements import PAID_TIERS, effective_tier, window_lapsed
from infrastructure.database.models.base import as_utc
from infrastructure.database.models.profile import Profile, SubscriptionStatus, SubscriptionTier
from services.profile_store import ProfileStore
from services.quota_tracker import QuotaTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntitlementSnapshot:
    """What a user is entitled to right now.

    ``remaining_reads`` is None for paid tiers, which are not metered.
    """

    user_id: str
    tier: SubscriptionTier
    stored_tier: SubscriptionTier
    status: SubscriptionStatus
    expires_at: Optional[datetime]
    remaining_reads: Optional[int]
    reads_reset_at: Optional[datetime]
    can_access_premium: bool
    is_stale: bool = False

    @classmethod
    def fail_closed(cls, user_id: str) -> "EntitlementSnapshot":
        return cls(
            user_id=user_id,
            tier=SubscriptionTier.FREE,
            stored_tier=SubscriptionTier.FREE,
            status=SubscriptionStatus.ACTIVE,
            expires_at=None,
            remaining_reads=0,
            reads_reset_at=None,
            can_access_premium=False,
            is_stale=True,
        )


def _utc_now() -> datetime:
    return datetime.now(UTC)


class EntitlementService:
    def __init__(
        self,
        db: AsyncSession,
        quota: Optional[QuotaTracker] = None,
        time_provider: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self._time_provider = time_provider or _utc_now
        self.store = ProfileStore(db)
        self.quota = quota or QuotaTracker(db, time_provider=self._time_provider)

    def snapshot_for(self, user_id: str, profile: Optional[Profile]) -> EntitlementSnapshot:
        """Build a snapshot from an already-loaded profile."""
        now = self._time_provider()
        if profile is None:
            return EntitlementSnapshot(
                user_id=user_id,
                tier=SubscriptionTier.FREE,
                stored_tier=SubscriptionTier.FREE,
                status=SubscriptionStatus.ACTIVE,
                expires_at=None,
                remaining_reads=0,
                reads_reset_at=None,
                can_access_premium=False,
            )

        tier = effective_tier(profile, now)
        if tier in PAID_TIERS:
            reads, reset_at = None, None
        else:
            reads = self.quota.remaining_reads(profile, now)
            # A lapsed window has not been persisted yet; the next one opens on first read
            reset_at = None if window_lapsed(profile, now) else as_utc(profile.premium_read_reset_at)

        return EntitlementSnapshot(
            user_id=user_id,
            tier=tier,
            stored_tier=profile.subscription_tier_enum,
            status=SubscriptionStatus(profile.subscription_status),
            expires_at=as_utc(profile.subscription_expires_at),
            remaining_reads=reads,
            reads_reset_at=reset_at,
            can_access_premium=tier in PAID_TIERS or bool(reads),
        )

    async def get_snapshot(self, user_id: str) -> EntitlementSnapshot:
        """Load the profile and build its snapshot; fails closed on datastore errors."""
        try:
            profile = await self.store.get(user_id)
        except SQLAlchemyError as e:
            logger.warning("Entitlement lookup failed for user %s, failing closed: %s", user_id, e)
            return EntitlementSnapshot.fail_closed(user_id)
        return self.snapshot_for(user_id, profile)
