"""
Pytest configuration and shared fixtures for backend tests.
"""

import os
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Must be set before settings are first loaded
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("ADMIN_IDS", "admin-test,admin-other")
os.environ.setdefault("REDIS_URL", "")

import pytest
from datetime import UTC, datetime, timedelta
from typing import AsyncGenerator, Optional
from uuid import uuid4

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from infrastructure.database.models import Base, Profile
from infrastructure.database.connection import get_db
from api.dependencies import token_service


# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_ID = "admin-test"

# Fixed instant used by services that take a time provider
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FrozenClock:
    """Callable time provider that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    """Session factory over the test engine, configured like the app's."""
    return async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_profile(db_session: AsyncSession):
    """Factory creating committed profiles."""

    async def _make(
        user_id: Optional[str] = None,
        tier: str = "free",
        status: str = "active",
        expires_at: Optional[datetime] = None,
        read_count: int = 0,
        reset_at: Optional[datetime] = None,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> Profile:
        user_id = user_id or f"user_{uuid4().hex[:12]}"
        profile = Profile(
            id=user_id,
            email=email or f"{user_id}@example.com",
            full_name=full_name,
            subscription_tier=tier,
            subscription_status=status,
            subscription_expires_at=expires_at,
            premium_read_count=read_count,
            premium_read_reset_at=reset_at or datetime.now(UTC),
        )
        db_session.add(profile)
        await db_session.commit()
        return profile

    return _make


@pytest.fixture
async def free_profile(make_profile) -> Profile:
    """Free profile with an open window and no reads spent."""
    return await make_profile(
        email="free@example.com",
        reset_at=datetime.now(UTC) + timedelta(days=20),
    )


@pytest.fixture
async def premium_profile(make_profile) -> Profile:
    """Premium subscriber expiring in 30 days."""
    return await make_profile(
        tier="premium",
        email="premium@example.com",
        expires_at=datetime.now(UTC) + timedelta(days=30),
    )


def _identity_headers(
    user_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> dict:
    token = token_service.create_session_token(user_id, email=email, name=name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def identity_headers():
    """Factory for Authorization headers carrying an identity session token."""
    return _identity_headers


@pytest.fixture
def auth_headers(free_profile: Profile) -> dict:
    """Generate authentication headers for the free test profile."""
    return _identity_headers(free_profile.id, email=free_profile.email)


@pytest.fixture
def admin_headers() -> dict:
    return {"X-Admin-Id": ADMIN_ID}


@pytest.fixture
async def async_client(
    db_session: AsyncSession, session_factory: async_sessionmaker
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        # One session per request, as in production
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    # Reset rate limiter state between tests to prevent cross-test 429s
    if hasattr(app.state, "limiter"):
        try:
            app.state.limiter.reset()
        except Exception:
            pass

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
