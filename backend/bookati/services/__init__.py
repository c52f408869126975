# backend/bookati/services/__init__.py
"""
Service layer for the Bookati capacity core.

Services own transaction boundaries and business rules; each receives its
SQLAlchemy Session explicitly.
"""

from .base import BaseService
from .booking_lock_service import BookingLockService
from .booking_service import BookingService
from .capacity_reconciliation_service import (
    CapacityCorrection,
    CapacityReconciliationService,
    ReconciliationReport,
)
from .package_quota_service import CustomerServiceCapacity, PackageQuotaService
from .shift_service import ShiftService
from .slot_service import SlotAvailability, SlotGenerationResult, SlotService

__all__ = [
    "BaseService",
    "BookingLockService",
    "BookingService",
    "CapacityCorrection",
    "CapacityReconciliationService",
    "CustomerServiceCapacity",
    "PackageQuotaService",
    "ReconciliationReport",
    "ShiftService",
    "SlotAvailability",
    "SlotGenerationResult",
    "SlotService",
]
