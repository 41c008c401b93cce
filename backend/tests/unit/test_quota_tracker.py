"""
Unit tests for QuotaTracker against an in-memory SQLite session.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models import Profile
from services.profile_store import ProfileNotFoundError, ProfileStore
from services.quota_tracker import QuotaTracker

pytestmark = pytest.mark.asyncio


def _tracker(db_session: AsyncSession, clock) -> QuotaTracker:
    return QuotaTracker(db_session, allowance=3, window=timedelta(days=30), time_provider=clock)


async def _stored(db_session: AsyncSession, user_id: str) -> Profile:
    return await ProfileStore(db_session).get_or_raise(user_id, refresh=True)


class TestConsumeRead:
    """Atomic consumption within and across windows."""

    async def test_new_profile_has_full_allowance(self, db_session, make_profile, clock):
        # Reset timestamp defaults to creation time, so the window starts lapsed
        profile = await make_profile(reset_at=clock.now)
        tracker = _tracker(db_session, clock)

        assert await tracker.remaining_reads_for(profile.id) == 3

    async def test_consumes_down_to_zero_then_refuses(self, db_session, make_profile, clock):
        profile = await make_profile(reset_at=clock.now + timedelta(days=10))
        tracker = _tracker(db_session, clock)

        results = [await tracker.consume_read(profile.id) for _ in range(4)]

        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert [r.applied for r in results] == [True, True, True, False]
        assert (await _stored(db_session, profile.id)).premium_read_count == 3

    async def test_lapsed_window_resets_and_counts_first_read(
        self, db_session, make_profile, clock
    ):
        old_reset = clock.now - timedelta(days=1)
        profile = await make_profile(read_count=3, reset_at=old_reset)
        tracker = _tracker(db_session, clock)

        result = await tracker.consume_read(profile.id)

        assert result.applied
        assert result.remaining == 2
        stored = await _stored(db_session, profile.id)
        assert stored.premium_read_count == 1
        assert stored.premium_read_reset_at == old_reset + timedelta(days=30)

    async def test_window_boundary_stays_anchored(self, db_session, make_profile, clock):
        old_reset = clock.now - timedelta(days=45)
        profile = await make_profile(read_count=2, reset_at=old_reset)
        tracker = _tracker(db_session, clock)

        await tracker.consume_read(profile.id)

        stored = await _stored(db_session, profile.id)
        assert stored.premium_read_reset_at == old_reset + timedelta(days=60)

    async def test_lost_race_rechecks_instead_of_overshooting(
        self, db_session, make_profile, clock
    ):
        profile = await make_profile(read_count=2, reset_at=clock.now + timedelta(days=5))
        tracker = _tracker(db_session, clock)
        # Load the profile into the session, then let a concurrent reader spend the last read
        await ProfileStore(db_session).get(profile.id)
        await db_session.execute(
            update(Profile)
            .where(Profile.id == profile.id)
            .values(premium_read_count=3)
            .execution_options(synchronize_session=False)
        )

        result = await tracker.consume_read(profile.id)

        assert not result.applied
        assert result.remaining == 0
        assert (await _stored(db_session, profile.id)).premium_read_count == 3

    async def test_concurrent_window_reset_only_applies_once(
        self, db_session, make_profile, clock
    ):
        old_reset = clock.now - timedelta(days=2)
        profile = await make_profile(read_count=3, reset_at=old_reset)
        store = ProfileStore(db_session)
        next_reset = old_reset + timedelta(days=30)

        first = await store.start_read_window(profile.id, old_reset, next_reset, clock.now)
        second = await store.start_read_window(profile.id, old_reset, next_reset, clock.now)

        assert first is True
        assert second is False
        assert (await _stored(db_session, profile.id)).premium_read_count == 1

    async def test_unknown_user_raises(self, db_session, clock):
        tracker = _tracker(db_session, clock)

        with pytest.raises(ProfileNotFoundError):
            await tracker.consume_read("nobody")

