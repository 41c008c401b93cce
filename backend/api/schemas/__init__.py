"""
API request and response schemas.
"""

from .admin import (
    DashboardResponse,
    DashboardStats,
    PaymentRequestUpdate,
    ProfileResponse,
    SubscriptionUpdate,
)
from .billing import (
    FreePlanInfo,
    PaymentRequestCreate,
    PaymentRequestResponse,
    PlanInfo,
    PlansResponse,
)
from .entitlements import (
    ContentAccessRequest,
    ContentAccessResponse,
    EntitlementResponse,
    SessionResponse,
)

__all__ = [
    "ContentAccessRequest",
    "ContentAccessResponse",
    "EntitlementResponse",
    "SessionResponse",
    "PlanInfo",
    "FreePlanInfo",
    "PlansResponse",
    "PaymentRequestCreate",
    "PaymentRequestResponse",
    "PaymentRequestUpdate",
    "SubscriptionUpdate",
    "ProfileResponse",
    "DashboardStats",
    "DashboardResponse",
]
