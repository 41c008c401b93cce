"""
Session, entitlement and content access schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from core.entitlements import AccessOutcome
from infrastructure.database.models.profile import SubscriptionStatus, SubscriptionTier


class EntitlementResponse(BaseModel):
    """Entitlement snapshot for the signed-in user."""

    user_id: str
    tier: SubscriptionTier = Field(..., description="Tier in force right now (expiry applied)")
    stored_tier: SubscriptionTier = Field(..., description="Tier as stored on the profile")
    status: SubscriptionStatus
    expires_at: Optional[datetime] = Field(None, description="Subscription expiry, null for none")
    remaining_reads: Optional[int] = Field(
        None, description="Free premium reads left in the window; null for paid tiers"
    )
    reads_reset_at: Optional[datetime] = Field(
        None, description="When the current read window ends, null if none is open"
    )
    can_access_premium: bool
    is_stale: bool = Field(
        False, description="True when the datastore was unreachable and defaults were used"
    )


class SessionResponse(BaseModel):
    """Result of establishing a session."""

    created: bool = Field(..., description="Whether a new free profile was created")
    entitlements: EntitlementResponse


class ContentAccessRequest(BaseModel):
    """Content flags supplied by the renderer."""

    is_premium: bool = False
    required_tier: SubscriptionTier = SubscriptionTier.STANDARD
    view_session_id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Client id for this page view; re-renders must reuse it",
    )


class ContentAccessResponse(BaseModel):
    """What the renderer should show."""

    content_id: str
    outcome: AccessOutcome
    full_access: bool
    tier: SubscriptionTier
    remaining_reads: int
    consumed: bool = Field(..., description="Whether this call spent a free premium read")
    preview_paragraphs: int = Field(
        ..., description="Paragraphs to show before the paywall; 0 when fully unlocked"
    )
    is_stale: bool = False
