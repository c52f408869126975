# backend/alembic/versions/001_capacity_core.py
"""Capacity core - services, shifts, slots and booking locks

Revision ID: 001_capacity_core
Revises:
Create Date: 2026-10-01 00:00:00.000000

Slots are the single point of truth for capacity. Booking locks are
separate rows that are summed at check time and never touch the slot
counters, so an expired lock needs no compensating update.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_capacity_core"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    """Create service, shift, slot and booking lock tables."""
    print("Creating capacity core tables...")

    op.create_table(
        "services",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("capacity_per_slot", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("capacity_per_slot >= 0", name="ck_services_capacity_non_negative"),
        sa.CheckConstraint(
            "duration_minutes IS NULL OR duration_minutes > 0",
            name="ck_services_duration_positive",
        ),
    )
    op.create_index("ix_services_tenant_id", "services", ["tenant_id"])

    op.create_table(
        "shifts",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=False),
        # 0 = Sunday ... 6 = Saturday
        sa.Column("days_of_week", JSON_TYPE, nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("capacity_per_slot", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("end_time > start_time", name="ck_shifts_time_window"),
        sa.CheckConstraint(
            "slot_duration_minutes IS NULL OR slot_duration_minutes > 0",
            name="ck_shifts_slot_duration_positive",
        ),
        sa.CheckConstraint(
            "capacity_per_slot IS NULL OR capacity_per_slot >= 0",
            name="ck_shifts_capacity_non_negative",
        ),
    )
    op.create_index("ix_shifts_tenant_id", "shifts", ["tenant_id"])
    op.create_index("ix_shifts_service_id", "shifts", ["service_id"])

    op.create_table(
        "slots",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("shift_id", sa.String(26), nullable=False),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("start_time_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("original_capacity", sa.Integer(), nullable=False),
        sa.Column("available_capacity", sa.Integer(), nullable=False),
        sa.Column("booked_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shift_id", "slot_date", "start_time", name="uq_slots_shift_date_start"),
        sa.CheckConstraint("original_capacity >= 0", name="ck_slots_original_capacity"),
        sa.CheckConstraint("available_capacity >= 0", name="ck_slots_available_capacity"),
        sa.CheckConstraint("booked_count >= 0", name="ck_slots_booked_count"),
    )
    op.create_index("ix_slots_tenant_id", "slots", ["tenant_id"])
    op.create_index("ix_slots_tenant_date", "slots", ["tenant_id", "slot_date"])

    op.create_table(
        "booking_locks",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("slot_id", sa.String(26), nullable=False),
        sa.Column("reserved_capacity", sa.Integer(), nullable=False),
        sa.Column("reserved_by_session_id", sa.String(255), nullable=True),
        sa.Column("lock_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["slot_id"], ["slots.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("reserved_capacity > 0", name="ck_booking_locks_reserved_positive"),
    )
    op.create_index("ix_booking_locks_tenant_id", "booking_locks", ["tenant_id"])
    op.create_index("ix_booking_locks_slot_id", "booking_locks", ["slot_id"])
    op.create_index(
        "ix_booking_locks_reserved_by_session_id", "booking_locks", ["reserved_by_session_id"]
    )
    op.create_index("ix_booking_locks_lock_expires_at", "booking_locks", ["lock_expires_at"])
    op.create_index("ix_booking_locks_slot_expires", "booking_locks", ["slot_id", "lock_expires_at"])

    print("Capacity core tables created")


def downgrade() -> None:
    """Drop capacity core tables."""
    print("Dropping capacity core tables...")

    op.drop_index("ix_booking_locks_slot_expires", table_name="booking_locks")
    op.drop_index("ix_booking_locks_lock_expires_at", table_name="booking_locks")
    op.drop_index("ix_booking_locks_reserved_by_session_id", table_name="booking_locks")
    op.drop_index("ix_booking_locks_slot_id", table_name="booking_locks")
    op.drop_index("ix_booking_locks_tenant_id", table_name="booking_locks")
    op.drop_table("booking_locks")

    op.drop_index("ix_slots_tenant_date", table_name="slots")
    op.drop_index("ix_slots_tenant_id", table_name="slots")
    op.drop_table("slots")

    op.drop_index("ix_shifts_service_id", table_name="shifts")
    op.drop_index("ix_shifts_tenant_id", table_name="shifts")
    op.drop_table("shifts")

    op.drop_index("ix_services_tenant_id", table_name="services")
    op.drop_table("services")
