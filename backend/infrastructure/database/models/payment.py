"""
Payment request database model (the ledger).
"""

from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class PaymentStatus(str, Enum):
    """Lifecycle of a payment request."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Offline payment channels accepted by the purchase form."""

    ORANGE_MONEY = "orange-money"
    WAVE = "wave"
    MOOV = "moov"
    NITA = "nita"
    AMANA = "amana"
    CARD = "card"


class PaymentRequest(Base, TimestampMixin):
    """A purchase attempt awaiting manual verification.

    Only ``status``, ``admin_note`` and ``updated_at`` change after creation;
    rows are never deleted.
    """

    __tablename__ = "payment_requests"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Purchaser
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_email: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    user_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # What was bought
    plan_id: Mapped[str] = mapped_column(String(50), nullable=False)
    plan_name: Mapped[str] = mapped_column(String(100), nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="XOF", nullable=False)

    # How it was paid
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    receipt_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    promo_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Verification lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
    )
    admin_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'verified', 'rejected', 'refunded')",
            name="ck_payment_requests_status",
        ),
        CheckConstraint("tier IN ('standard', 'premium')", name="ck_payment_requests_tier"),
        Index("ix_payment_requests_user_id", "user_id"),
        Index("ix_payment_requests_status", "status"),
        Index("ix_payment_requests_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<PaymentRequest(id={self.id}, plan={self.plan_id}, status={self.status})>"
