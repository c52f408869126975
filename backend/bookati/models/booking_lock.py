"""Short-lived capacity reservation held ahead of booking creation."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BookingLock(Base):
    """
    Capacity claimed on a slot until it is consumed by a booking or expires.

    Rows are inserted and deleted, never updated in place.
    """

    __tablename__ = "booking_locks"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(64), nullable=False, index=True)
    slot_id = Column(
        String(26),
        ForeignKey("slots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reserved_capacity = Column(Integer, nullable=False)
    reserved_by_session_id = Column(String(255), nullable=True, index=True)
    lock_expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("reserved_capacity > 0", name="ck_booking_locks_reserved_positive"),
        Index("ix_booking_locks_slot_expires", "slot_id", "lock_expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<BookingLock {self.id} slot={self.slot_id} "
            f"reserved={self.reserved_capacity} expires={self.lock_expires_at}>"
        )
