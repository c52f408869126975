# backend/bookati/repositories/__init__.py
"""
Repository layer for the Bookati capacity core.

Repositories wrap SQLAlchemy queries; they flush but never commit.
"""

from .base_repository import BaseRepository, IRepository
from .booking_lock_repository import BookingLockRepository
from .booking_repository import BookingRepository
from .event_outbox_repository import EventDeliveryRepository, EventOutboxRepository
from .package_repository import PackageRepository
from .shift_repository import ServiceRepository, ShiftRepository
from .slot_repository import SlotRepository

__all__ = [
    "BaseRepository",
    "BookingLockRepository",
    "BookingRepository",
    "EventDeliveryRepository",
    "EventOutboxRepository",
    "IRepository",
    "PackageRepository",
    "ServiceRepository",
    "ShiftRepository",
    "SlotRepository",
]
