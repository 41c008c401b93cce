"""
Quota tracker for free-tier premium reads.

Free profiles get a fixed allowance of premium reads per rolling window
(30 days from ``premium_read_reset_at``). Consumption goes through the
profile store's conditional updates so that two simultaneous reads for the
same user can never push the meter past the allowance.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.entitlements import next_window_start, remaining_reads, window_lapsed
from infrastructure.config.settings import settings
from services.profile_store import ProfileNotFoundError, ProfileStore

logger = logging.getLogger(__name__)

# Attempts after losing a conditional-update race; each re-reads state first
MAX_CONSUME_ATTEMPTS = 3


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of a consumption attempt, as confirmed by the store."""

    remaining: int
    applied: bool


def _utc_now() -> datetime:
    return datetime.now(UTC)


class QuotaTracker:
    """Time-windowed counter of free premium reads."""

    def __init__(
        self,
        db: AsyncSession,
        allowance: Optional[int] = None,
        window: Optional[timedelta] = None,
        time_provider: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.store = ProfileStore(db)
        self.allowance = settings.premium_read_allowance if allowance is None else allowance
        self.window = window or timedelta(days=settings.quota_window_days)
        self._time_provider = time_provider or _utc_now

    def now(self) -> datetime:
        return self._time_provider()

    def remaining_reads(self, profile, now: Optional[datetime] = None) -> int:
        """Reads left for an already-loaded profile (lazy reset, no write)."""
        return remaining_reads(profile, now or self.now(), self.allowance)

    async def remaining_reads_for(self, user_id: str) -> int:
        """
        Fetch the profile and report reads left.

        Fails closed: if the datastore cannot be reached the answer is zero,
        never the full allowance.
        """
        try:
            profile = await self.store.get(user_id)
        except SQLAlchemyError as e:
            logger.warning("Quota lookup failed for user %s, reporting 0 reads: %s", user_id, e)
            return 0
        return self.remaining_reads(profile)

    async def consume_read(self, user_id: str, now: Optional[datetime] = None) -> ConsumeResult:
        """
        Spend one premium read for a user.

        Returns:
            ConsumeResult with the remaining count after consumption; ``applied``
            is False when the store refused (quota exhausted)

        Raises:
            ProfileNotFoundError: If the user has no profile
        """
        now = now or self.now()

        for attempt in range(MAX_CONSUME_ATTEMPTS):
            profile = await self.store.get_or_raise(user_id, refresh=attempt > 0)

            if window_lapsed(profile, now):
                next_reset = next_window_start(profile.premium_read_reset_at, now, self.window)
                if await self.store.start_read_window(
                    user_id, profile.premium_read_reset_at, next_reset, now
                ):
                    logger.info(
                        "Started new read window for user %s (next reset %s)",
                        user_id,
                        next_reset.isoformat(),
                    )
                    return ConsumeResult(remaining=self.allowance - 1, applied=True)
                continue

            if profile.premium_read_count >= self.allowance:
                return ConsumeResult(remaining=0, applied=False)

            new_count = await self.store.increment_read_count(user_id, self.allowance, now)
            if new_count is not None:
                return ConsumeResult(remaining=max(0, self.allowance - new_count), applied=True)

            logger.info(
                "Read consumption for user %s lost a race (attempt %d), re-checking",
                user_id,
                attempt + 1,
            )

        profile = await self.store.get_or_raise(user_id, refresh=True)
        return ConsumeResult(remaining=self.remaining_reads(profile, now), applied=False)


__all__ = ["ConsumeResult", "ProfileNotFoundError", "QuotaTracker"]
