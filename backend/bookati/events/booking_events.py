"""Booking domain events written to the outbox."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional


@dataclass
class BookingFact:
    """
    Shared payload for booking lifecycle facts.

    Carries what downstream ticket, invoice and notification code needs
    without reading the booking back: contact info, service and slot time.
    """

    event_type: ClassVar[str] = "booking.fact"

    booking_id: str
    tenant_id: str
    status: str
    service_id: str
    slot_id: str
    visitor_count: int
    package_covered_quantity: int
    paid_quantity: int
    slot_start_utc: Optional[datetime] = None
    slot_end_utc: Optional[datetime] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    package_subscription_id: Optional[str] = None
    occurred_at: Optional[datetime] = None

    @property
    def aggregate_id(self) -> str:
        return self.booking_id

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCreated(BookingFact):
    """Fired after a booking is created in pending status."""

    event_type: ClassVar[str] = "booking.created"


@dataclass
class BookingConfirmed(BookingFact):
    event_type: ClassVar[str] = "booking.confirmed"


@dataclass
class BookingCancelled(BookingFact):
    """Fired after a booking leaves the active set by cancellation."""

    event_type: ClassVar[str] = "booking.cancelled"

    cancellation_reason: Optional[str] = None


@dataclass
class BookingCompleted(BookingFact):
    event_type: ClassVar[str] = "booking.completed"


@dataclass
class BookingRescheduled(BookingFact):
    """Fired after an active booking moves to another slot."""

    event_type: ClassVar[str] = "booking.rescheduled"

    previous_slot_id: Optional[str] = None


@dataclass
class PackageExhausted:
    """Fired once when a subscription's quota for a service reaches zero."""

    event_type: ClassVar[str] = "package.exhausted"

    subscription_id: str
    service_id: str
    tenant_id: str
    customer_id: str
    booking_id: Optional[str] = None
    occurred_at: Optional[datetime] = field(default=None)

    @property
    def aggregate_id(self) -> str:
        return self.subscription_id

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
