# backend/bookati/routes/v1/bookings.py
"""
Booking routes - API v1

All business logic delegated to BookingService.

Endpoints:
    POST / - Turn a live lock into a pending booking
    POST /bulk - Turn several locks into one group of bookings
    GET /{booking_id} - Booking details
    PATCH /{booking_id}/status - Confirm, cancel or complete a booking
    PATCH /{booking_id}/slot - Move an active booking to another slot
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ...api.dependencies import get_booking_service, get_tenant_id
from ...core.exceptions import DomainException
from ...core.ulid_helper import ULID_PATH_PATTERN
from ...schemas.booking import (
    BookingCreateRequest,
    BookingResponse,
    BookingStatusUpdate,
    BookingTimeUpdate,
    BulkBookingCreateRequest,
    BulkBookingResponse,
)
from ...services.booking_service import BookingService, BulkBookingItem

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Slot, lock or subscription not found"},
        409: {"description": "Slot closed or capacity no longer available"},
        410: {"description": "Reservation expired, please retry"},
        422: {"description": "Package quota exhausted"},
    },
)
async def create_booking(
    payload: BookingCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Create a pending booking from a previously acquired lock.

    The lock is consumed on success and released on any failure, so the
    client must acquire a new lock before retrying.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.create_booking,
            payload.lock_id,
            payload.slot_id,
            payload.visitor_count,
            tenant_id=tenant_id,
            package_subscription_id=payload.package_subscription_id,
            session_id=payload.session_id,
            customer_id=payload.customer_id,
            customer_name=payload.customer_name,
            customer_email=str(payload.customer_email) if payload.customer_email else None,
            customer_phone=payload.customer_phone,
            notes=payload.notes,
            allow_paid_fallback=payload.allow_paid_fallback,
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/bulk",
    response_model=BulkBookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Slot, lock or subscription not found"},
        409: {"description": "A slot is closed"},
        410: {"description": "A reservation expired, please retry"},
        422: {"description": "Package quota exhausted"},
    },
)
async def create_bulk_booking(
    payload: BulkBookingCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BulkBookingResponse:
    """Create one booking per lock, all or nothing, under a shared booking group."""
    try:
        result = await asyncio.to_thread(
            booking_service.create_bulk_booking,
            [
                BulkBookingItem(
                    lock_id=item.lock_id, slot_id=item.slot_id, visitor_count=item.visitor_count
                )
                for item in payload.items
            ],
            tenant_id=tenant_id,
            package_subscription_id=payload.package_subscription_id,
            session_id=payload.session_id,
            customer_id=payload.customer_id,
            customer_name=payload.customer_name,
            customer_email=str(payload.customer_email) if payload.customer_email else None,
            customer_phone=payload.customer_phone,
            notes=payload.notes,
            allow_paid_fallback=payload.allow_paid_fallback,
        )
        return BulkBookingResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}},
)
async def get_booking(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    tenant_id: str = Depends(get_tenant_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id, tenant_id)
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    responses={
        404: {"description": "Booking not found"},
        409: {"description": "Transition not allowed from the current status"},
    },
)
async def update_booking_status(
    payload: BookingStatusUpdate,
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    tenant_id: str = Depends(get_tenant_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Apply a status change; repeating the current status is a no-op."""
    try:
        booking = await asyncio.to_thread(
            booking_service.transition_status,
            booking_id,
            payload.status,
            tenant_id=tenant_id,
            reason=payload.reason,
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{booking_id}/slot",
    response_model=BookingResponse,
    responses={
        404: {"description": "Booking or slot not found"},
        409: {"description": "Booking not active, slot closed or full"},
        422: {"description": "Package-covered booking cannot change service"},
    },
)
async def edit_booking_time(
    payload: BookingTimeUpdate,
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    tenant_id: str = Depends(get_tenant_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Move a pending or confirmed booking to another slot."""
    try:
        booking = await asyncio.to_thread(
            booking_service.edit_booking_time,
            booking_id,
            payload.slot_id,
            tenant_id=tenant_id,
            session_id=payload.session_id,
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)
