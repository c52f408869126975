# backend/bookati/models/booking.py
"""
Booking model.

A booking claims ``visitor_count`` units of a slot's capacity while it is
pending or confirmed. The claim is split between package-covered units and
paid units; the split never changes after creation, so cancelling gives back
exactly what was taken.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    PAID = "paid"
    UNPAID = "unpaid"


# Statuses whose visitors are counted against slot capacity
ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value})
TERMINAL_BOOKING_STATUSES = frozenset(
    {BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value}
)


class Booking(Base):
    """A customer's claim on slot capacity."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(64), nullable=False, index=True)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False, index=True)
    slot_id = Column(
        String(26),
        ForeignKey("slots.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    customer_id = Column(String(64), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(64), nullable=True)

    visitor_count = Column(Integer, nullable=False)
    # Shared by bookings created together from several locks
    booking_group_id = Column(String(26), nullable=True, index=True)
    package_subscription_id = Column(
        String(26),
        ForeignKey("package_subscriptions.id"),
        nullable=True,
        index=True,
    )
    package_covered_quantity = Column(Integer, nullable=False, default=0)
    paid_quantity = Column(Integer, nullable=False, default=0)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    slot = relationship("Slot")
    service = relationship("Service")

    __table_args__ = (
        CheckConstraint("visitor_count > 0", name="ck_bookings_visitor_count_positive"),
        CheckConstraint(
            "package_covered_quantity >= 0 AND paid_quantity >= 0",
            name="ck_bookings_split_non_negative",
        ),
        CheckConstraint(
            "package_covered_quantity + paid_quantity = visitor_count",
            name="ck_bookings_split_matches_visitors",
        ),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
        Index("ix_bookings_slot_status", "slot_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} slot={self.slot_id} visitors={self.visitor_count} "
            f"status={self.status}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def mark_confirmed(self) -> None:
        self.status = BookingStatus.CONFIRMED.value
        self.confirmed_at = datetime.now(timezone.utc)

    def mark_cancelled(self, reason: Optional[str] = None) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = datetime.now(timezone.utc)
        if reason:
            self.cancellation_reason = reason

    def mark_completed(self) -> None:
        self.status = BookingStatus.COMPLETED.value
        self.completed_at = datetime.now(timezone.utc)
