"""Domain events for the booking capacity core."""
from .booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingCreated,
    BookingFact,
    PackageExhausted,
)
from .publisher import EventPublisher

__all__ = [
    "BookingCancelled",
    "BookingCompleted",
    "BookingConfirmed",
    "BookingCreated",
    "BookingFact",
    "EventPublisher",
    "PackageExhausted",
]
