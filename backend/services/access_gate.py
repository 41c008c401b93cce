"""
Access gate: decides what a visitor sees for one content item.

Combines the effective tier, the quota tracker and the content flags into a
single outcome. A metered read is spent at most once per view session and
content item; the consumption and the grant row are committed together.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.entitlements import AccessOutcome, decide_access, effective_tier
from infrastructure.config.settings import settings
from infrastructure.database.models.content_view import PremiumReadGrant
from infrastructure.database.models.profile import SubscriptionTier
from services.profile_store import ProfileStore
from services.quota_tracker import QuotaTracker

logger = logging.getLogger(__name__)

# Outcomes decided by the read meter rather than by tier alone
_METERED_OUTCOMES = (AccessOutcome.FULL_ACCESS_METERED, AccessOutcome.PREVIEW_QUOTA_EXHAUSTED)


@dataclass(frozen=True)
class AccessDecision:
    """Result of an access check for one content item."""

    outcome: AccessOutcome
    tier: SubscriptionTier
    remaining_reads: int
    consumed: bool = False
    preview_paragraphs: int = 0
    is_stale: bool = False

    @property
    def full_access(self) -> bool:
        return not self.outcome.is_preview


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AccessGate:
    """Per-request access decisions backed by the profile store."""

    def __init__(
        self,
        db: AsyncSession,
        quota: Optional[QuotaTracker] = None,
        preview_paragraphs: Optional[int] = None,
        time_provider: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self._time_provider = time_provider or _utc_now
        self.store = ProfileStore(db)
        self.quota = quota or QuotaTracker(db, time_provider=self._time_provider)
        self.preview_paragraphs = (
            settings.preview_paragraphs if preview_paragraphs is None else preview_paragraphs
        )

    def _decision(
        self,
        outcome: AccessOutcome,
        tier: SubscriptionTier,
        remaining: int,
        consumed: bool = False,
        is_stale: bool = False,
    ) -> AccessDecision:
        return AccessDecision(
            outcome=outcome,
            tier=tier,
            remaining_reads=remaining,
            consumed=consumed,
            preview_paragraphs=self.preview_paragraphs if outcome.is_preview else 0,
            is_stale=is_stale,
        )

    def _fail_closed(
        self, is_premium: bool, required_tier: SubscriptionTier
    ) -> AccessDecision:
        outcome = decide_access(True, SubscriptionTier.FREE, 0, is_premium, required_tier)
        return self._decision(outcome, SubscriptionTier.FREE, 0, is_stale=True)

    async def _already_granted(
        self, user_id: str, view_session_id: str, content_id: str
    ) -> bool:
        result = await self.db.execute(
            select(PremiumReadGrant.id).where(
                PremiumReadGrant.user_id == user_id,
                PremiumReadGrant.view_session_id == view_session_id,
                PremiumReadGrant.content_id == content_id,
            )
        )
        return result.first() is not None

    async def open_content(
        self,
        user_id: Optional[str],
        content_id: str,
        view_session_id: str,
        is_premium: bool,
        required_tier: SubscriptionTier = SubscriptionTier.STANDARD,
    ) -> AccessDecision:
        """
        Decide access for ``content_id`` and spend a metered read if needed.

        Args:
            user_id: Authenticated user id, or None for anonymous visitors
            content_id: Content item being opened
            view_session_id: Client id for this page view; re-renders reuse it
            is_premium: Whether the item is premium
            required_tier: Minimum tier for full access without metering

        Returns:
            AccessDecision; ``is_stale`` is set when the datastore could not be
            reached and the decision was made from fail-closed defaults
        """
        now = self._time_provider()

        if user_id is None:
            outcome = decide_access(False, SubscriptionTier.FREE, 0, is_premium, required_tier)
            return self._decision(outcome, SubscriptionTier.FREE, 0)

        try:
            profile = await self.store.get(user_id, refresh=True)
        except SQLAlchemyError as e:
            logger.warning("Profile lookup failed for user %s, failing closed: %s", user_id, e)
            return self._fail_closed(is_premium, required_tier)

        tier = effective_tier(profile, now)
        reads_left = self.quota.remaining_reads(profile, now)
        outcome = decide_access(True, tier, reads_left, is_premium, required_tier)

        if outcome not in _METERED_OUTCOMES:
            return self._decision(outcome, tier, reads_left)

        try:
            # A view that already spent a read keeps full access, even the last one
            if await self._already_granted(user_id, view_session_id, content_id):
                return self._decision(AccessOutcome.FULL_ACCESS_METERED, tier, reads_left)

            if outcome is AccessOutcome.PREVIEW_QUOTA_EXHAUSTED:
                return self._decision(outcome, tier, reads_left)

            result = await self.quota.consume_read(user_id, now)
            if not result.applied:
                await self.db.rollback()
                logger.info("Premium read refused for user %s: quota exhausted", user_id)
                return self._decision(
                    AccessOutcome.PREVIEW_QUOTA_EXHAUSTED, tier, result.remaining
                )

            self.db.add(
                PremiumReadGrant(
                    user_id=user_id,
                    content_id=content_id,
                    view_session_id=view_session_id,
                )
            )
            await self.db.flush()
            await self.db.commit()
        except IntegrityError:
            # A concurrent render of the same view already spent the read
            await self.db.rollback()
            logger.info(
                "Premium read for user %s on %s already granted in view %s",
                user_id,
                content_id,
                view_session_id,
            )
            try:
                profile = await self.store.get(user_id, refresh=True)
            except SQLAlchemyError as e:
                logger.warning("Profile re-read failed for user %s: %s", user_id, e)
                return self._decision(outcome, tier, 0, is_stale=True)
            return self._decision(outcome, tier, self.quota.remaining_reads(profile, now))
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("Premium read for user %s failed, failing closed: %s", user_id, e)
            return self._fail_closed(is_premium, required_tier)

        logger.info(
            "User %s spent a premium read on %s (%d remaining)",
            user_id,
            content_id,
            result.remaining,
            extra={"user_id": user_id, "content_id": content_id},
        )
        return self._decision(outcome, tier, result.remaining, consumed=True)
