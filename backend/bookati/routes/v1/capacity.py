# backend/bookati/routes/v1/capacity.py
"""
Capacity maintenance routes - API v1

Endpoints:
    POST /recalculate - Rebuild slot counters from active bookings
    POST /sync-service-capacity - Rebase upcoming slots on their service capacity
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ...api.dependencies import (
    get_optional_tenant_id,
    get_reconciliation_service,
    get_slot_service,
)
from ...core.exceptions import DomainException
from ...schemas.reconciliation import (
    CapacityCorrectionResponse,
    RecalculateCapacityRequest,
    RecalculateCapacityResponse,
)
from ...schemas.slot import (
    ServiceCapacitySyncResponse,
    SyncServiceCapacityRequest,
    SyncServiceCapacityResponse,
)
from ...services.capacity_reconciliation_service import CapacityReconciliationService
from ...services.slot_service import SlotService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["capacity-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "/recalculate",
    response_model=RecalculateCapacityResponse,
    responses={404: {"description": "Slot not found"}},
)
async def recalculate_capacity(
    payload: RecalculateCapacityRequest,
    tenant_id: Optional[str] = Depends(get_optional_tenant_id),
    reconciliation_service: CapacityReconciliationService = Depends(get_reconciliation_service),
) -> RecalculateCapacityResponse:
    """
    Recalculate one slot or every slot.

    Without ``X-Tenant-ID`` the bulk run covers all tenants. Only slots whose
    counters changed are listed in ``corrections``.
    """
    try:
        if payload.all:
            report = await asyncio.to_thread(
                reconciliation_service.recalculate_all, tenant_id=tenant_id
            )
        else:
            report = await asyncio.to_thread(
                reconciliation_service.recalculate_slot_capacity,
                payload.slot_id,
                tenant_id=tenant_id,
            )
        return RecalculateCapacityResponse(
            slots_checked=report.slots_checked,
            slots_updated=report.slots_updated,
            slots_skipped=report.slots_skipped,
            corrections=[
                CapacityCorrectionResponse.model_validate(c) for c in report.corrections
            ],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sync-service-capacity", response_model=SyncServiceCapacityResponse)
async def sync_service_capacity(
    payload: SyncServiceCapacityRequest,
    tenant_id: Optional[str] = Depends(get_optional_tenant_id),
    slot_service: SlotService = Depends(get_slot_service),
) -> SyncServiceCapacityResponse:
    """Rebase upcoming slots of every service on the service's current capacity."""
    try:
        results = await asyncio.to_thread(
            slot_service.sync_all_slots_with_service_capacity,
            tenant_id=tenant_id,
            from_date=payload.from_date,
        )
        return SyncServiceCapacityResponse(
            services=[ServiceCapacitySyncResponse.model_validate(r) for r in results],
            slots_updated=sum(r.slots_updated for r in results),
        )
    except DomainException as e:
        handle_domain_exception(e)
