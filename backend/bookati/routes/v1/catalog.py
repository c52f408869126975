# backend/bookati/routes/v1/catalog.py
"""
Catalog routes - API v1

Services, their weekly shifts and slot generation.

Endpoints:
    POST /services - Create a bookable service
    PATCH /services/{service_id} - Edit a service, rebasing upcoming slots on a capacity change
    POST /shifts - Create a weekly shift for a service
    POST /shifts/{shift_id}/slots - Expand a shift into slots for a date range
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ...api.dependencies import get_shift_service, get_slot_service, get_tenant_id
from ...core.exceptions import DomainException
from ...core.ulid_helper import ULID_PATH_PATTERN
from ...schemas.slot import (
    ServiceCreateRequest,
    ServiceResponse,
    ServiceUpdateRequest,
    ServiceUpdateResponse,
    ShiftCreateRequest,
    ShiftResponse,
    SlotGenerationRequest,
    SlotGenerationResponse,
)
from ...services.shift_service import ShiftService
from ...services.slot_service import SlotService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/services", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    payload: ServiceCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    shift_service: ShiftService = Depends(get_shift_service),
) -> ServiceResponse:
    try:
        service = await asyncio.to_thread(
            shift_service.create_service,
            tenant_id=tenant_id,
            name=payload.name,
            capacity_per_slot=payload.capacity_per_slot,
            price=payload.price,
            duration_minutes=payload.duration_minutes,
        )
        return ServiceResponse.model_validate(service)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/services/{service_id}",
    response_model=ServiceUpdateResponse,
    responses={404: {"description": "Service not found"}},
)
async def update_service(
    payload: ServiceUpdateRequest,
    service_id: str = Path(..., description="Service ULID", pattern=ULID_PATH_PATTERN),
    tenant_id: str = Depends(get_tenant_id),
    shift_service: ShiftService = Depends(get_shift_service),
) -> ServiceUpdateResponse:
    """
    Edit a service.

    A new ``capacity_per_slot`` is applied to every slot from today on whose
    shift has no capacity of its own; ``slot_sync`` reports what changed.
    """
    try:
        result = await asyncio.to_thread(
            shift_service.update_service,
            service_id,
            tenant_id=tenant_id,
            name=payload.name,
            capacity_per_slot=payload.capacity_per_slot,
            price=payload.price,
            duration_minutes=payload.duration_minutes,
            is_active=payload.is_active,
        )
        return ServiceUpdateResponse.model_validate(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/shifts", response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
async def create_shift(
    payload: ShiftCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    shift_service: ShiftService = Depends(get_shift_service),
) -> ShiftResponse:
    try:
        shift = await asyncio.to_thread(
            shift_service.create_shift,
            tenant_id=tenant_id,
            service_id=payload.service_id,
            days_of_week=payload.days_of_week,
            start_time=payload.start_time,
            end_time=payload.end_time,
            timezone=payload.timezone,
            slot_duration_minutes=payload.slot_duration_minutes,
            capacity_per_slot=payload.capacity_per_slot,
        )
        return ShiftResponse.model_validate(shift)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/shifts/{shift_id}/slots",
    response_model=SlotGenerationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Shift not found"}},
)
async def generate_slots(
    shift_id: str,
    payload: SlotGenerationRequest,
    tenant_id: str = Depends(get_tenant_id),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotGenerationResponse:
    """Generate slots for the range; existing slots are left untouched."""
    try:
        result = await asyncio.to_thread(
            slot_service.create_slots_for_shift,
            shift_id,
            payload.start_date,
            payload.end_date,
            tenant_id=tenant_id,
        )
        return SlotGenerationResponse.model_validate(result)
    except DomainException as e:
        handle_domain_exception(e)
