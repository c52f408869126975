# backend/bookati/models/__init__.py
"""
SQLAlchemy models for the Bookati capacity core.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import (
    ACTIVE_BOOKING_STATUSES,
    TERMINAL_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from .booking_lock import BookingLock
from .event_outbox import EventDelivery, EventOutbox, EventOutboxStatus
from .package import (
    PackageExhaustionNotification,
    PackageSubscription,
    PackageSubscriptionUsage,
    SubscriptionStatus,
)
from .service import Service
from .shift import Shift
from .slot import Slot

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "TERMINAL_BOOKING_STATUSES",
    "Booking",
    "BookingLock",
    "BookingStatus",
    "EventDelivery",
    "EventOutbox",
    "EventOutboxStatus",
    "PackageExhaustionNotification",
    "PackageSubscription",
    "PackageSubscriptionUsage",
    "PaymentStatus",
    "Service",
    "Shift",
    "Slot",
    "SubscriptionStatus",
]
