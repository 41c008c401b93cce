"""
Premium read grants: the one-shot consumption flag per content view.
"""

from uuid import uuid4

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class PremiumReadGrant(Base, TimestampMixin):
    """Records that a metered read was spent on a content item in a view session."""

    __tablename__ = "premium_read_grants"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    content_id: Mapped[str] = mapped_column(String(255), nullable=False)
    view_session_id: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "view_session_id", "content_id", name="uq_premium_read_grants_view_content"
        ),
    )
