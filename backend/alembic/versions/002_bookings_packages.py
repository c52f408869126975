# backend/alembic/versions/002_bookings_packages.py
"""Bookings and the package quota ledger

Revision ID: 002_bookings_packages
Revises: 001_capacity_core
Create Date: 2026-10-01 00:00:01.000000

The ledger keeps original = remaining + used per (subscription, service);
the check constraints make a broken adjustment fail at commit instead of
silently corrupting quota.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002_bookings_packages"
down_revision: Union[str, None] = "001_capacity_core"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create package subscription, ledger and booking tables."""
    print("Creating booking and package tables...")

    op.create_table(
        "package_subscriptions",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("package_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_package_subscriptions_tenant_id", "package_subscriptions", ["tenant_id"])
    op.create_index(
        "ix_package_subscriptions_customer_id", "package_subscriptions", ["customer_id"]
    )
    op.create_index("ix_package_subscriptions_package_id", "package_subscriptions", ["package_id"])

    op.create_table(
        "package_subscription_usage",
        sa.Column("subscription_id", sa.String(26), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=False),
        sa.Column("original_quantity", sa.Integer(), nullable=False),
        sa.Column("remaining_quantity", sa.Integer(), nullable=False),
        sa.Column("used_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["subscription_id"], ["package_subscriptions.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.PrimaryKeyConstraint("subscription_id", "service_id"),
        sa.CheckConstraint("original_quantity >= 0", name="ck_usage_original_non_negative"),
        sa.CheckConstraint("remaining_quantity >= 0", name="ck_usage_remaining_non_negative"),
        sa.CheckConstraint(
            "remaining_quantity <= original_quantity",
            name="ck_usage_remaining_within_original",
        ),
        sa.CheckConstraint(
            "original_quantity = remaining_quantity + used_quantity",
            name="ck_usage_quantity_balance",
        ),
    )

    op.create_table(
        "package_exhaustion_notifications",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("subscription_id", sa.String(26), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=False),
        sa.Column("notified_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["subscription_id"], ["package_subscriptions.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "subscription_id", "service_id", name="uq_package_exhaustion_subscription_service"
        ),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=False),
        sa.Column("slot_id", sa.String(26), nullable=False),
        # Customer contact is carried on the booking for downstream notifications
        sa.Column("customer_id", sa.String(64), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("customer_phone", sa.String(64), nullable=True),
        sa.Column("visitor_count", sa.Integer(), nullable=False),
        sa.Column("package_subscription_id", sa.String(26), nullable=True),
        sa.Column("package_covered_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("paid_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.ForeignKeyConstraint(["slot_id"], ["slots.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["package_subscription_id"], ["package_subscriptions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("visitor_count > 0", name="ck_bookings_visitor_count_positive"),
        sa.CheckConstraint(
            "package_covered_quantity >= 0 AND paid_quantity >= 0",
            name="ck_bookings_split_non_negative",
        ),
        sa.CheckConstraint(
            "package_covered_quantity + paid_quantity = visitor_count",
            name="ck_bookings_split_matches_visitors",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
    )
    op.create_index("ix_bookings_tenant_id", "bookings", ["tenant_id"])
    op.create_index("ix_bookings_service_id", "bookings", ["service_id"])
    op.create_index("ix_bookings_slot_id", "bookings", ["slot_id"])
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    op.create_index(
        "ix_bookings_package_subscription_id", "bookings", ["package_subscription_id"]
    )
    op.create_index("ix_bookings_status", "bookings", ["status"])
    # Reconciliation sums active visitors per slot
    op.create_index("ix_bookings_slot_status", "bookings", ["slot_id", "status"])

    print("Booking and package tables created")


def downgrade() -> None:
    """Drop booking and package tables."""
    print("Dropping booking and package tables...")

    for index in (
        "ix_bookings_slot_status",
        "ix_bookings_status",
        "ix_bookings_package_subscription_id",
        "ix_bookings_customer_id",
        "ix_bookings_slot_id",
        "ix_bookings_service_id",
        "ix_bookings_tenant_id",
    ):
        op.drop_index(index, table_name="bookings")
    op.drop_table("bookings")

    op.drop_table("package_exhaustion_notifications")
    op.drop_table("package_subscription_usage")

    op.drop_index("ix_package_subscriptions_package_id", table_name="package_subscriptions")
    op.drop_index("ix_package_subscriptions_customer_id", table_name="package_subscriptions")
    op.drop_index("ix_package_subscriptions_tenant_id", table_name="package_subscriptions")
    op.drop_table("package_subscriptions")
