# backend/bookati/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .database import get_db
from .services import (
    get_booking_lock_service,
    get_booking_service,
    get_package_quota_service,
    get_reconciliation_service,
    get_shift_service,
    get_slot_service,
)
from .tenant import get_optional_tenant_id, get_tenant_id

__all__ = [
    # Database
    "get_db",
    # Tenant
    "get_optional_tenant_id",
    "get_tenant_id",
    # Services
    "get_booking_lock_service",
    "get_booking_service",
    "get_package_quota_service",
    "get_reconciliation_service",
    "get_shift_service",
    "get_slot_service",
]
