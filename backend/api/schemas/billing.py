"""
Billing request/response schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from infrastructure.database.models.payment import PaymentMethod


class PlanInfo(BaseModel):
    """Information about a purchasable plan."""

    id: str = Field(..., description="Plan ID (e.g. standard-monthly, premium-yearly)")
    name: str = Field(..., description="Display name of the plan")
    tier: str = Field(..., description="Tier granted on verification")
    duration_days: int = Field(..., description="Subscription length granted")
    price: int = Field(..., description="Price in whole currency units")
    currency: str
    features: list[str] = Field(default_factory=list)


class FreePlanInfo(BaseModel):
    premium_reads_per_window: int
    window_days: int
    features: list[str]


class PlansResponse(BaseModel):
    """Response containing all purchasable plans."""

    plans: list[PlanInfo]
    free: FreePlanInfo


class PaymentRequestCreate(BaseModel):
    """Purchase form submission; price and tier come from the plan table."""

    plan_id: str = Field(..., min_length=1, max_length=50)
    payment_method: PaymentMethod
    phone_number: Optional[str] = Field(None, max_length=30)
    reference_number: Optional[str] = Field(None, max_length=100)
    receipt_url: Optional[str] = Field(None, max_length=500)
    promo_code: Optional[str] = Field(None, max_length=50)


class PaymentRequestResponse(BaseModel):
    """A payment ledger entry."""

    id: str
    user_id: str
    user_email: str
    user_name: Optional[str] = None
    plan_id: str
    plan_name: str
    tier: str
    amount: int
    currency: str
    payment_method: str
    phone_number: Optional[str] = None
    reference_number: Optional[str] = None
    receipt_url: Optional[str] = None
    promo_code: Optional[str] = None
    status: str
    admin_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
