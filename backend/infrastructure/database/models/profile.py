"""
Profile database model.

One row per identity-provider user; carries subscription state and the
premium-read meter.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UTCDateTime, utcnow


class SubscriptionTier(str, Enum):
    """Subscription tier enumeration."""

    FREE = "free"
    STANDARD = "standard"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    """Subscription status enumeration."""

    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    PENDING = "pending"


class Profile(Base, TimestampMixin):
    """Subscription profile keyed by the identity provider's user id."""

    __tablename__ = "profiles"

    # Opaque, externally issued identity key
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    email: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Subscription
    subscription_tier: Mapped[str] = mapped_column(
        String(20),
        default=SubscriptionTier.FREE.value,
        nullable=False,
    )
    subscription_status: Mapped[str] = mapped_column(
        String(20),
        default=SubscriptionStatus.ACTIVE.value,
        nullable=False,
    )
    # NULL means no expiration tracked (free or lifetime)
    subscription_expires_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Premium-read meter: reads consumed in the window ending at premium_read_reset_at
    premium_read_count: Mapped[int] = mapped_column(default=0, nullable=False)
    premium_read_reset_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "subscription_tier IN ('free', 'standard', 'premium')",
            name="ck_profiles_subscription_tier",
        ),
        CheckConstraint(
            "subscription_status IN ('active', 'past_due', 'canceled', 'pending')",
            name="ck_profiles_subscription_status",
        ),
        CheckConstraint("premium_read_count >= 0", name="ck_profiles_read_count_positive"),
        Index("ix_profiles_subscription_tier", "subscription_tier"),
        Index("ix_profiles_email", "email"),
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, tier={self.subscription_tier})>"

    @property
    def subscription_tier_enum(self) -> SubscriptionTier:
        """Get subscription tier as enum."""
        return SubscriptionTier(self.subscription_tier)
