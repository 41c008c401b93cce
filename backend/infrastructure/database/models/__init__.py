"""
SQLAlchemy database models.
"""

from .admin import AdminAuditLog, AuditAction, AuditTargetType
from .base import Base, TimestampMixin, UTCDateTime
from .content_view import PremiumReadGrant
from .payment import PaymentMethod, PaymentRequest, PaymentStatus
from .profile import Profile, SubscriptionStatus, SubscriptionTier

__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "Profile",
    "SubscriptionTier",
    "SubscriptionStatus",
    "PaymentRequest",
    "PaymentStatus",
    "PaymentMethod",
    "PremiumReadGrant",
    "AdminAuditLog",
    "AuditAction",
    "AuditTargetType",
]
