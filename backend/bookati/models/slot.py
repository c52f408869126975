# backend/bookati/models/slot.py
"""
Slot model - the persisted unit of finite capacity.

Counters:
    original_capacity  baseline set at generation time, rebased only when the
                       service capacity is edited
    available_capacity mutable, >= 0
    booked_count       mutable, >= 0

available_capacity + booked_count == original_capacity holds after every
committed capacity transaction. Booking locks never touch these counters;
they are separate rows summed at check time.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Slot(Base):
    """A bookable time window with finite capacity."""

    __tablename__ = "slots"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(64), nullable=False, index=True)
    shift_id = Column(String(26), ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False)

    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    start_time_utc = Column(DateTime(timezone=True), nullable=False)
    end_time_utc = Column(DateTime(timezone=True), nullable=False)

    original_capacity = Column(Integer, nullable=False)
    available_capacity = Column(Integer, nullable=False)
    booked_count = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    shift = relationship("Shift", back_populates="slots")

    __table_args__ = (
        UniqueConstraint("shift_id", "slot_date", "start_time", name="uq_slots_shift_date_start"),
        CheckConstraint("original_capacity >= 0", name="ck_slots_original_capacity"),
        CheckConstraint("available_capacity >= 0", name="ck_slots_available_capacity"),
        CheckConstraint("booked_count >= 0", name="ck_slots_booked_count"),
        Index("ix_slots_tenant_date", "tenant_id", "slot_date"),
    )

    @property
    def service_id(self) -> str:
        return self.shift.service_id

    def __repr__(self) -> str:
        return (
            f"<Slot {self.id} {self.slot_date} {self.start_time} "
            f"avail={self.available_capacity} booked={self.booked_count}/{self.original_capacity}>"
        )
