"""
Admin request/response schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from api.schemas.billing import PaymentRequestResponse


class PaymentRequestUpdate(BaseModel):
    """Administrator decision on a payment request."""

    status: str = Field(..., description="Target status: verified, rejected or refunded")
    admin_note: Optional[str] = Field(None, max_length=2000)


class SubscriptionUpdate(BaseModel):
    """Manual subscription override."""

    user_id: str = Field(..., min_length=1, max_length=255)
    tier: str = Field(..., description="free, standard or premium")
    months: int = Field(1, ge=1, le=120, description="Billing periods granted for paid tiers")


class ProfileResponse(BaseModel):
    """Profile as seen by administrators."""

    id: str
    email: str
    full_name: Optional[str] = None
    subscription_tier: str
    subscription_status: str
    subscription_expires_at: Optional[datetime] = None
    premium_read_count: int
    premium_read_reset_at: datetime
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DashboardStats(BaseModel):
    total_users: int
    free: int
    standard: int
    premium: int
    total_revenue: int = Field(..., description="Sum of verified payment amounts")
    pending_payments: int


class DashboardResponse(BaseModel):
    """Admin dashboard overview."""

    stats: DashboardStats
    recent_payments: list[PaymentRequestResponse]
