"""
Service layer for business logic.
"""

from services.access_gate import AccessDecision, AccessGate
from services.entitlement_service import EntitlementService, EntitlementSnapshot
from services.payment_ledger import PaymentLedger, PaymentRequestNotFoundError, UnknownPlanError
from services.profile_store import ProfileNotFoundError, ProfileStore
from services.quota_tracker import ConsumeResult, QuotaTracker
from services.verification_workflow import (
    InvalidTransitionError,
    TransitionConflictError,
    VerificationWorkflow,
)

__all__ = [
    "AccessDecision",
    "AccessGate",
    "ConsumeResult",
    "EntitlementService",
    "EntitlementSnapshot",
    "InvalidTransitionError",
    "PaymentLedger",
    "PaymentRequestNotFoundError",
    "ProfileNotFoundError",
    "ProfileStore",
    "QuotaTracker",
    "TransitionConflictError",
    "UnknownPlanError",
    "VerificationWorkflow",
]
