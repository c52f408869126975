# backend/bookati/models/shift.py
"""
Recurring shift definition.

A shift is a weekly recurrence rule (days of week + local time window) for a
service. It is expanded into concrete Slot rows for a date range.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base


class Shift(Base):
    """Weekly recurrence rule that slots are generated from."""

    __tablename__ = "shifts"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(64), nullable=False, index=True)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False, index=True)

    # 0 = Sunday ... 6 = Saturday (PostgreSQL DOW convention)
    days_of_week = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=False,
        default=list,
    )
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")

    slot_duration_minutes = Column(Integer, nullable=True)
    capacity_per_slot = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    service = relationship("Service")
    slots = relationship("Slot", back_populates="shift", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_shifts_time_window"),
        CheckConstraint(
            "slot_duration_minutes IS NULL OR slot_duration_minutes > 0",
            name="ck_shifts_slot_duration_positive",
        ),
        CheckConstraint(
            "capacity_per_slot IS NULL OR capacity_per_slot >= 0",
            name="ck_shifts_capacity_non_negative",
        ),
    )

    def __repr__(self) -> str:
        return f"<Shift {self.id} days={self.days_of_week} {self.start_time}-{self.end_time}>"
