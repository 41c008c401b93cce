"""Create profiles, payment_requests, premium_read_grants and admin_audit_logs

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("subscription_tier", sa.String(length=20), nullable=False, server_default="free"),
        sa.Column(
            "subscription_status", sa.String(length=20), nullable=False, server_default="active"
        ),
        sa.Column("subscription_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("premium_read_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "premium_read_reset_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "subscription_tier IN ('free', 'standard', 'premium')",
            name="ck_profiles_subscription_tier",
        ),
        sa.CheckConstraint(
            "subscription_status IN ('active', 'past_due', 'canceled', 'pending')",
            name="ck_profiles_subscription_status",
        ),
        sa.CheckConstraint("premium_read_count >= 0", name="ck_profiles_read_count_positive"),
    )
    op.create_index("ix_profiles_subscription_tier", "profiles", ["subscription_tier"])
    op.create_index("ix_profiles_email", "profiles", ["email"])

    op.create_table(
        "payment_requests",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("user_email", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("user_name", sa.String(length=255), nullable=True),
        sa.Column("plan_id", sa.String(length=50), nullable=False),
        sa.Column("plan_name", sa.String(length=100), nullable=False),
        sa.Column("tier", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="XOF"),
        sa.Column("payment_method", sa.String(length=30), nullable=False),
        sa.Column("phone_number", sa.String(length=30), nullable=True),
        sa.Column("reference_number", sa.String(length=100), nullable=True),
        sa.Column("receipt_url", sa.String(length=500), nullable=True),
        sa.Column("promo_code", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("admin_note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'verified', 'rejected', 'refunded')",
            name="ck_payment_requests_status",
        ),
        sa.CheckConstraint("tier IN ('standard', 'premium')", name="ck_payment_requests_tier"),
    )
    op.create_index("ix_payment_requests_user_id", "payment_requests", ["user_id"])
    op.create_index("ix_payment_requests_status", "payment_requests", ["status"])
    op.create_index("ix_payment_requests_created_at", "payment_requests", ["created_at"])

    op.create_table(
        "premium_read_grants",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("content_id", sa.String(length=255), nullable=False),
        sa.Column("view_session_id", sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "view_session_id", "content_id", name="uq_premium_read_grants_view_content"
        ),
    )
    op.create_index("ix_premium_read_grants_user_id", "premium_read_grants", ["user_id"])

    op.create_table(
        "admin_audit_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("admin_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("target_type", sa.String(length=50), nullable=False),
        sa.Column("target_id", sa.String(length=255), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_admin_audit_logs_admin_id", "admin_audit_logs", ["admin_id"])
    op.create_index("ix_admin_audit_logs_action", "admin_audit_logs", ["action"])
    op.create_index("ix_admin_audit_logs_target", "admin_audit_logs", ["target_type", "target_id"])


def downgrade() -> None:
    op.drop_index("ix_admin_audit_logs_target", table_name="admin_audit_logs")
    op.drop_index("ix_admin_audit_logs_action", table_name="admin_audit_logs")
    op.drop_index("ix_admin_audit_logs_admin_id", table_name="admin_audit_logs")
    op.drop_table("admin_audit_logs")

    op.drop_index("ix_premium_read_grants_user_id", table_name="premium_read_grants")
    op.drop_table("premium_read_grants")

    op.drop_index("ix_payment_requests_created_at", table_name="payment_requests")
    op.drop_index("ix_payment_requests_status", table_name="payment_requests")
    op.drop_index("ix_payment_requests_user_id", table_name="payment_requests")
    op.drop_table("payment_requests")

    op.drop_index("ix_profiles_email", table_name="profiles")
    op.drop_index("ix_profiles_subscription_tier", table_name="profiles")
    op.drop_table("profiles")
