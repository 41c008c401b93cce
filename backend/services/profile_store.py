"""
Profile store: persistence for subscription profiles.

Exposes get-by-id, upsert, and the atomic counter primitives the quota
tracker relies on. Counter changes are always single conditional UPDATE
statements evaluated by the database, never a value computed in Python and
written back.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.profile import (
    Profile,
    SubscriptionStatus,
    SubscriptionTier,
)

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def _email_pattern(fragment: str) -> str:
    """ILIKE pattern matching ``fragment`` literally anywhere in an email."""
    escaped = fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class ProfileNotFoundError(LookupError):
    """Raised when no profile exists for a user id."""

    def __init__(self, user_id: str):
        super().__init__(f"Profile {user_id} not found")
        self.user_id = user_id


class ProfileStore:
    """Data access for the ``profiles`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str, refresh: bool = False) -> Optional[Profile]:
        """
        Load a profile by id.

        Args:
            user_id: Identity-provider user id
            refresh: Bypass the session identity map and re-read the row

        Returns:
            The profile, or None when the user has never established a session
        """
        stmt = select(Profile).where(Profile.id == user_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_raise(self, user_id: str, refresh: bool = False) -> Profile:
        profile = await self.get(user_id, refresh=refresh)
        if profile is None:
            raise ProfileNotFoundError(user_id)
        return profile

    async def ensure_profile(
        self,
        user_id: str,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> Profile:
        """
        Upsert the profile on session establishment.

        New identities start on the free tier. Existing rows only get their
        contact details refreshed; subscription state is never touched here.
        """
        profile = await self.get(user_id)
        if profile is None:
            profile = Profile(
                id=user_id,
                email=email or "",
                full_name=full_name,
                subscription_tier=SubscriptionTier.FREE.value,
                subscription_status=SubscriptionStatus.ACTIVE.value,
            )
            self.db.add(profile)
            try:
                await self.db.flush()
            except IntegrityError:
                # Another request created it first
                await self.db.rollback()
                return await self.get_or_raise(user_id, refresh=True)
            logger.info("Created free profile for user %s", user_id)
            return profile

        if email and profile.email != email:
            profile.email = email
        if full_name and profile.full_name != full_name:
            profile.full_name = full_name
        await self.db.flush()
        return profile

    async def apply_subscription(
        self,
        user_id: str,
        tier: SubscriptionTier,
        status: SubscriptionStatus,
        expires_at: Optional[datetime],
        create_missing: bool = False,
    ) -> Profile:
        """
        Write subscription fields for a user.

        Args:
            user_id: Target user
            tier: New stored tier
            status: New subscription status
            expires_at: New expiration, None for no expiration
            create_missing: Create the profile when absent (verification path)

        Raises:
            ProfileNotFoundError: If the profile is absent and create_missing is False
        """
        profile = await self.get(user_id)
        if profile is None:
            if not create_missing:
                raise ProfileNotFoundError(user_id)
            profile = Profile(id=user_id, email="")
            self.db.add(profile)

        profile.subscription_tier = tier.value
        profile.subscription_status = status.value
        profile.subscription_expires_at = expires_at
        await self.db.flush()
        return profile

    async def increment_read_count(
        self, user_id: str, allowance: int, now: datetime
    ) -> Optional[int]:
        """
        Atomically consume one read inside an open window.

        Returns:
            The new consumed count, or None when no row qualified (window
            lapsed, quota exhausted, or the profile does not exist)
        """
        result = await self.db.execute(
            update(Profile)
            .where(
                Profile.id == user_id,
                Profile.premium_read_reset_at > now,
                Profile.premium_read_count < allowance,
            )
            .values(
                premium_read_count=Profile.premium_read_count + 1,
                updated_at=now,
            )
            .returning(Profile.premium_read_count)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def start_read_window(
        self,
        user_id: str,
        expected_reset_at: datetime,
        next_reset_at: datetime,
        now: datetime,
    ) -> bool:
        """
        Reset a lapsed window and count the first read of the new one.

        Compare-and-swap on the stored boundary: only the caller that saw
        ``expected_reset_at`` wins; a concurrent resetter makes this a no-op.
        """
        result = await self.db.execute(
            update(Profile)
            .where(
                Profile.id == user_id,
                Profile.premium_read_reset_at == expected_reset_at,
                Profile.premium_read_reset_at <= now,
            )
            .values(
                premium_read_count=1,
                premium_read_reset_at=next_reset_at,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def search_by_email(self, email: str, limit: int = SEARCH_LIMIT) -> list[Profile]:
        """Case-insensitive substring match on email, newest first."""
        pattern = _email_pattern(email)
        result = await self.db.execute(
            select(Profile)
            .where(Profile.email.ilike(pattern, escape="\\"))
            .order_by(Profile.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[Profile]:
        result = await self.db.execute(select(Profile).order_by(Profile.created_at.desc()))
        return list(result.scalars().all())

    async def count_by_tier(self) -> dict[str, int]:
        """Profile counts grouped by stored tier; every tier is present."""
        result = await self.db.execute(
            select(Profile.subscription_tier, func.count()).group_by(Profile.subscription_tier)
        )
        counts = {tier.value: 0 for tier in SubscriptionTier}
        for tier, count in result.all():
            counts[tier] = count
        return counts
