# backend/bookati/routes/v1/slots.py
"""
Slot routes - API v1

Endpoints:
    GET / - Slots for the tenant, optionally within a date range
    GET /{slot_id} - Slot counters
    GET /{slot_id}/availability - Claimable capacity after active locks
    PATCH /{slot_id}/availability - Open or close a slot for new locks
"""

import asyncio
from datetime import date
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import get_slot_service, get_tenant_id
from ...core.exceptions import DomainException, ValidationException
from ...core.timezone_utils import ensure_utc
from ...models.slot import Slot
from ...schemas.slot import SlotAvailabilityResponse, SlotAvailabilityUpdate, SlotResponse
from ...services.slot_service import SlotService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["slots-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _slot_response(slot: Slot) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        tenant_id=slot.tenant_id,
        shift_id=slot.shift_id,
        slot_date=slot.slot_date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        start_time_utc=ensure_utc(slot.start_time_utc),
        end_time_utc=ensure_utc(slot.end_time_utc),
        original_capacity=slot.original_capacity,
        available_capacity=slot.available_capacity,
        booked_count=slot.booked_count,
        is_available=bool(slot.is_available),
    )


@router.get("", response_model=List[SlotResponse])
async def list_slots(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    tenant_id: str = Depends(get_tenant_id),
    slot_service: SlotService = Depends(get_slot_service),
) -> List[SlotResponse]:
    try:
        if start_date and end_date and end_date < start_date:
            raise ValidationException("end_date must not be before start_date")
        slots = await asyncio.to_thread(slot_service.list_slots, tenant_id, start_date, end_date)
        return [_slot_response(slot) for slot in slots]
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{slot_id}",
    response_model=SlotResponse,
    responses={404: {"description": "Slot not found"}},
)
async def get_slot(
    slot_id: str,
    tenant_id: str = Depends(get_tenant_id),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    try:
        slot = await asyncio.to_thread(slot_service.get_slot, slot_id, tenant_id)
        return _slot_response(slot)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{slot_id}/availability",
    response_model=SlotAvailabilityResponse,
    responses={404: {"description": "Slot not found"}},
)
async def get_slot_availability(
    slot_id: str,
    tenant_id: str = Depends(get_tenant_id),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotAvailabilityResponse:
    """Capacity a new lock could still claim: original - booked - active locks."""
    try:
        availability = await asyncio.to_thread(
            slot_service.get_claimable_capacity, slot_id, tenant_id
        )
        return SlotAvailabilityResponse.model_validate(availability)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{slot_id}/availability",
    response_model=SlotResponse,
    responses={404: {"description": "Slot not found"}},
)
async def update_slot_availability(
    slot_id: str,
    payload: SlotAvailabilityUpdate,
    tenant_id: str = Depends(get_tenant_id),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    try:
        slot = await asyncio.to_thread(
            slot_service.set_availability, slot_id, payload.is_available, tenant_id
        )
        return _slot_response(slot)
    except DomainException as e:
        handle_domain_exception(e)
