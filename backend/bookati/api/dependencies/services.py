# backend/bookati/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets service instances bound to its own Session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_lock_service import BookingLockService
from ...services.booking_service import BookingService
from ...services.capacity_reconciliation_service import CapacityReconciliationService
from ...services.package_quota_service import PackageQuotaService
from ...services.shift_service import ShiftService
from ...services.slot_service import SlotService
from .database import get_db


def get_slot_service(db: Session = Depends(get_db)) -> SlotService:
    return SlotService(db)


def get_shift_service(db: Session = Depends(get_db)) -> ShiftService:
    return ShiftService(db)


def get_booking_lock_service(db: Session = Depends(get_db)) -> BookingLockService:
    return BookingLockService(db)


def get_package_quota_service(db: Session = Depends(get_db)) -> PackageQuotaService:
    return PackageQuotaService(db)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Booking service sharing one session with its collaborators."""
    return BookingService(
        db,
        slot_service=SlotService(db),
        lock_service=BookingLockService(db),
        quota_service=PackageQuotaService(db),
    )


def get_reconciliation_service(db: Session = Depends(get_db)) -> CapacityReconciliationService:
    return CapacityReconciliationService(db)
