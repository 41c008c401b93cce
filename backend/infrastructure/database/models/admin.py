"""
Admin database models.
"""

from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class AuditAction(str, Enum):
    """Admin audit log action types."""

    PAYMENT_VERIFIED = "payment_verified"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_REFUNDED = "payment_refunded"
    SUBSCRIPTION_UPDATED = "subscription_updated"


class AuditTargetType(str, Enum):
    """Admin audit log target types."""

    PAYMENT_REQUEST = "payment_request"
    PROFILE = "profile"


class AdminAuditLog(Base, TimestampMixin):
    """Admin audit log model for tracking administrative actions."""

    __tablename__ = "admin_audit_logs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Allow-listed admin identity from the X-Admin-Id header
    admin_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    target_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str] = mapped_column(String(255), nullable=False)

    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure:
    {
        "old_values": {...},
        "new_values": {...},
        "admin_note": "Receipt checked"
    }
    """

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6 max length

    __table_args__ = (Index("ix_admin_audit_logs_target", "target_type", "target_id"),)

    def __repr__(self) -> str:
        return f"<AdminAuditLog(action={self.action}, target={self.target_type}:{self.target_id})>"
