# backend/bookati/services/shift_service.py
"""
Catalog service for services and their recurring shifts.

These are the inputs slot generation reads. Editing a service's capacity
rebases the counters of its upcoming slots in the same transaction.
"""

from dataclasses import dataclass
from datetime import time
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import is_valid_timezone
from ..models.service import Service
from ..models.shift import Shift
from ..repositories.shift_repository import ServiceRepository, ShiftRepository
from .base import BaseService
from .slot_service import ServiceCapacitySync, SlotService


@dataclass
class ServiceUpdateResult:
    service: Service
    slot_sync: Optional[ServiceCapacitySync] = None


class ShiftService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.service_repository = ServiceRepository(db)
        self.shift_repository = ShiftRepository(db)

    @BaseService.measure_operation("create_service")
    def create_service(
        self,
        *,
        tenant_id: str,
        name: str,
        capacity_per_slot: int,
        price: Decimal = Decimal("0"),
        duration_minutes: Optional[int] = None,
    ) -> Service:
        if capacity_per_slot < 0:
            raise ValidationException("capacity_per_slot must be >= 0")
        with self.transaction():
            service = self.service_repository.create(
                tenant_id=tenant_id,
                name=name,
                capacity_per_slot=capacity_per_slot,
                price=price,
                duration_minutes=duration_minutes,
                is_active=True,
            )
        self.log_operation("create_service", service_id=service.id, tenant_id=tenant_id)
        return service

    @BaseService.measure_operation("update_service")
    def update_service(
        self,
        service_id: str,
        *,
        tenant_id: str,
        name: Optional[str] = None,
        capacity_per_slot: Optional[int] = None,
        price: Optional[Decimal] = None,
        duration_minutes: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> ServiceUpdateResult:
        """
        Edit a service; a capacity change is pushed onto its upcoming slots.

        The service row and the slot rebase commit together, so no slot is
        left offering the old capacity once the edit is visible.
        """
        if capacity_per_slot is not None and capacity_per_slot < 0:
            raise ValidationException("capacity_per_slot must be >= 0")

        slot_sync: Optional[ServiceCapacitySync] = None
        with self.transaction():
            service = self.service_repository.get_for_tenant(
                service_id, tenant_id, for_update=True
            )
            if service is None:
                raise NotFoundException(f"Service {service_id} not found", code="SERVICE_NOT_FOUND")
            if name is not None:
                service.name = name
            if price is not None:
                service.price = price
            if duration_minutes is not None:
                service.duration_minutes = duration_minutes
            if is_active is not None:
                service.is_active = is_active
            if capacity_per_slot is not None and capacity_per_slot != service.capacity_per_slot:
                service.capacity_per_slot = capacity_per_slot
                slot_sync = SlotService(self.db).apply_service_capacity(service)

        self.log_operation(
            "update_service",
            service_id=service_id,
            capacity_changed=slot_sync is not None,
            slots_updated=slot_sync.slots_updated if slot_sync else 0,
        )
        return ServiceUpdateResult(service=service, slot_sync=slot_sync)

    @BaseService.measure_operation("create_shift")
    def create_shift(
        self,
        *,
        tenant_id: str,
        service_id: str,
        days_of_week: List[int],
        start_time: time,
        end_time: time,
        timezone: str = "UTC",
        slot_duration_minutes: Optional[int] = None,
        capacity_per_slot: Optional[int] = None,
    ) -> Shift:
        """
        Create a weekly shift for a service.

        ``days_of_week`` uses 0 = Sunday ... 6 = Saturday.
        """
        if not days_of_week:
            raise ValidationException("days_of_week must not be empty")
        if any(day < 0 or day > 6 for day in days_of_week):
            raise ValidationException("days_of_week values must be between 0 (Sunday) and 6")
        if end_time <= start_time:
            raise ValidationException("end_time must be after start_time")
        if not is_valid_timezone(timezone):
            raise ValidationException(f"Unknown timezone: {timezone}")

        with self.transaction():
            service = self.service_repository.get_for_tenant(service_id, tenant_id)
            if service is None:
                raise NotFoundException(f"Service {service_id} not found", code="SERVICE_NOT_FOUND")
            shift = self.shift_repository.create(
                tenant_id=tenant_id,
                service_id=service.id,
                days_of_week=sorted(set(days_of_week)),
                start_time=start_time,
                end_time=end_time,
                timezone=timezone,
                slot_duration_minutes=slot_duration_minutes,
                capacity_per_slot=capacity_per_slot,
                is_active=True,
            )
        self.log_operation("create_shift", shift_id=shift.id, service_id=service_id)
        return shift
