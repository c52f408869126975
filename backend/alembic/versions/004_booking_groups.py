# backend/alembic/versions/004_booking_groups.py
"""Group bookings created together from several locks

Revision ID: 004_booking_groups
Revises: 003_event_outbox
Create Date: 2026-10-16 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "004_booking_groups"
down_revision: Union[str, None] = "003_event_outbox"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add bookings.booking_group_id."""
    print("Adding booking groups...")

    with op.batch_alter_table("bookings") as batch_op:
        batch_op.add_column(sa.Column("booking_group_id", sa.String(26), nullable=True))
        batch_op.create_index("ix_bookings_booking_group_id", ["booking_group_id"])

    print("Booking groups added")


def downgrade() -> None:
    """Drop bookings.booking_group_id."""
    with op.batch_alter_table("bookings") as batch_op:
        batch_op.drop_index("ix_bookings_booking_group_id")
        batch_op.drop_column("booking_group_id")
