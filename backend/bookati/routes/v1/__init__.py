"""Version 1 API routers, mounted under ``/api/v1`` in ``bookati.main``."""

from fastapi import APIRouter

from . import booking_locks, bookings, capacity, catalog, package_subscriptions, slots

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(catalog.router)
api_v1.include_router(slots.router, prefix="/slots")
api_v1.include_router(booking_locks.router, prefix="/booking-locks")
api_v1.include_router(bookings.router, prefix="/bookings")
api_v1.include_router(package_subscriptions.router, prefix="/package-subscriptions")
api_v1.include_router(capacity.router, prefix="/capacity")

__all__ = ["api_v1"]
