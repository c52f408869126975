"""Schemas for booking creation and status changes."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Literal, Optional

from pydantic import EmailStr, Field

from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking
from ._strict_base import StrictModel, StrictRequestModel

if TYPE_CHECKING:
    from ..services.booking_service import BulkBookingResult

BookingStatusLiteral = Literal["pending", "confirmed", "cancelled", "completed"]


class BookingCreateRequest(StrictRequestModel):
    lock_id: str = Field(..., min_length=1, max_length=26)
    slot_id: str = Field(..., min_length=1, max_length=26)
    visitor_count: int = Field(..., ge=1)
    package_subscription_id: Optional[str] = Field(None, max_length=26)
    session_id: Optional[str] = Field(None, max_length=255)
    customer_id: Optional[str] = Field(None, max_length=64)
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=2000)
    allow_paid_fallback: bool = Field(
        True,
        description="Charge the part of the party the package cannot cover instead of rejecting",
    )


class BulkBookingItemRequest(StrictRequestModel):
    lock_id: str = Field(..., min_length=1, max_length=26)
    slot_id: str = Field(..., min_length=1, max_length=26)
    visitor_count: int = Field(1, ge=1)


class BulkBookingCreateRequest(StrictRequestModel):
    items: List[BulkBookingItemRequest] = Field(..., min_length=1)
    package_subscription_id: Optional[str] = Field(None, max_length=26)
    session_id: Optional[str] = Field(None, max_length=255)
    customer_id: Optional[str] = Field(None, max_length=64)
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=2000)
    allow_paid_fallback: bool = True


class BookingTimeUpdate(StrictRequestModel):
    slot_id: str = Field(
        ..., min_length=1, max_length=26, description="Slot to move the booking to"
    )
    session_id: Optional[str] = Field(
        None, max_length=255, description="Requester session whose own locks are ignored"
    )


class BookingStatusUpdate(StrictRequestModel):
    status: BookingStatusLiteral
    reason: Optional[str] = Field(None, max_length=1000)


class BookingResponse(StrictModel):
    booking_id: str
    tenant_id: str
    slot_id: str
    service_id: str
    status: BookingStatusLiteral
    visitor_count: int
    booking_group_id: Optional[str] = None
    package_subscription_id: Optional[str] = None
    package_covered_quantity: int
    paid_quantity: int
    total_price: Decimal
    payment_status: str
    customer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            booking_id=booking.id,
            tenant_id=booking.tenant_id,
            slot_id=booking.slot_id,
            service_id=booking.service_id,
            status=booking.status,
            visitor_count=booking.visitor_count,
            booking_group_id=booking.booking_group_id,
            package_subscription_id=booking.package_subscription_id,
            package_covered_quantity=booking.package_covered_quantity,
            paid_quantity=booking.paid_quantity,
            total_price=Decimal(str(booking.total_price or 0)),
            payment_status=booking.payment_status,
            customer_id=booking.customer_id,
            created_at=ensure_utc(booking.created_at),
            confirmed_at=ensure_utc(booking.confirmed_at),
            cancelled_at=ensure_utc(booking.cancelled_at),
            completed_at=ensure_utc(booking.completed_at),
        )


class BulkBookingResponse(StrictModel):
    booking_group_id: str
    total_bookings: int
    package_covered_total: int
    paid_total: int
    bookings: List[BookingResponse]

    @classmethod
    def from_result(cls, result: "BulkBookingResult") -> "BulkBookingResponse":
        return cls(
            booking_group_id=result.booking_group_id,
            total_bookings=len(result.bookings),
            package_covered_total=result.package_covered_total,
            paid_total=result.paid_total,
            bookings=[BookingResponse.from_booking(b) for b in result.bookings],
        )
