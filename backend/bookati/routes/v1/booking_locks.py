# backend/bookati/routes/v1/booking_locks.py
"""
Booking lock routes - API v1

Endpoints:
    POST / - Reserve capacity on a slot for a short TTL
    POST /active-totals - Unexpired reserved capacity per slot
    POST /sweep - Delete expired locks (operational)
    GET /{lock_id}/validate - Check a lock is live and owned by the session
    DELETE /{lock_id} - Release a lock
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...api.dependencies import get_booking_lock_service, get_optional_tenant_id, get_tenant_id
from ...core.exceptions import DomainException
from ...schemas.booking_lock import (
    ActiveLockTotalsRequest,
    ActiveLockTotalsResponse,
    LockCreateRequest,
    LockResponse,
    LockValidationResponse,
    SweepResponse,
)
from ...services.booking_lock_service import BookingLockService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["booking-locks-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "",
    response_model=LockResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Slot not found"},
        409: {"description": "Not enough claimable capacity or slot closed"},
    },
)
async def acquire_lock(
    payload: LockCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    lock_service: BookingLockService = Depends(get_booking_lock_service),
) -> LockResponse:
    """Hold capacity on a slot while the customer completes checkout."""
    try:
        lock = await asyncio.to_thread(
            lock_service.acquire_lock,
            payload.slot_id,
            payload.visitor_count,
            payload.ttl_seconds,
            tenant_id=tenant_id,
            session_id=payload.session_id,
        )
        return LockResponse.from_lock(lock)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/active-totals", response_model=ActiveLockTotalsResponse)
async def get_active_lock_totals(
    payload: ActiveLockTotalsRequest,
    tenant_id: str = Depends(get_tenant_id),
    lock_service: BookingLockService = Depends(get_booking_lock_service),
) -> ActiveLockTotalsResponse:
    try:
        totals = await asyncio.to_thread(
            lock_service.get_active_lock_totals, payload.slot_ids, tenant_id
        )
        return ActiveLockTotalsResponse(totals=totals)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sweep", response_model=SweepResponse)
async def sweep_expired_locks(
    tenant_id: Optional[str] = Depends(get_optional_tenant_id),
    lock_service: BookingLockService = Depends(get_booking_lock_service),
) -> SweepResponse:
    """Run the expired-lock sweep now instead of waiting for the schedule."""
    try:
        removed = await asyncio.to_thread(lock_service.sweep_expired_locks, tenant_id=tenant_id)
        return SweepResponse(removed=removed)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{lock_id}/validate", response_model=LockValidationResponse)
async def validate_lock(
    lock_id: str,
    session_id: Optional[str] = Query(None, max_length=255),
    tenant_id: str = Depends(get_tenant_id),
    lock_service: BookingLockService = Depends(get_booking_lock_service),
) -> LockValidationResponse:
    try:
        valid = await asyncio.to_thread(
            lock_service.validate_lock, lock_id, session_id, tenant_id
        )
        return LockValidationResponse(lock_id=lock_id, valid=valid)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{lock_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def release_lock(
    lock_id: str,
    tenant_id: str = Depends(get_tenant_id),
    lock_service: BookingLockService = Depends(get_booking_lock_service),
) -> Response:
    """Release a lock. Releasing an already-gone lock is not an error."""
    try:
        await asyncio.to_thread(lock_service.release_lock, lock_id, tenant_id=tenant_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)
