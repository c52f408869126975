# backend/bookati/services/capacity_reconciliation_service.py
"""
Capacity Reconciliation service.

Rebuilds slot counters from ground truth, the visitor totals of pending and
confirmed bookings:

    booked_count       = sum(visitor_count of active bookings)
    available_capacity = max(original_capacity - booked_count, 0)

The result depends only on current booking rows, so running it twice in a
row changes nothing the second time. Bulk runs use one short transaction per
slot so the job never holds many slot locks at once.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, time
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..monitoring.prometheus_metrics import PrometheusMetrics
from ..repositories.booking_repository import BookingRepository
from ..repositories.slot_repository import SlotRepository
from .base import BaseService


@dataclass
class CapacityCorrection:
    slot_id: str
    slot_date: date
    start_time: time
    original_capacity: int
    old_available_capacity: int
    new_available_capacity: int
    old_booked_count: int
    new_booked_count: int
    active_booking_count: int

    @property
    def changed(self) -> bool:
        return (
            self.old_available_capacity != self.new_available_capacity
            or self.old_booked_count != self.new_booked_count
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReconciliationReport:
    slots_checked: int = 0
    slots_updated: int = 0
    slots_skipped: int = 0
    corrections: List[CapacityCorrection] = field(default_factory=list)

    def add(self, correction: CapacityCorrection) -> None:
        self.slots_checked += 1
        if correction.changed:
            self.slots_updated += 1
            self.corrections.append(correction)


class CapacityReconciliationService(BaseService):
    """Single-slot and bulk capacity repair."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.slot_repository = SlotRepository(db)
        self.booking_repository = BookingRepository(db)

    @BaseService.measure_operation("recalculate_slot_capacity")
    def recalculate_slot_capacity(
        self, slot_id: str, *, tenant_id: Optional[str] = None
    ) -> ReconciliationReport:
        report = ReconciliationReport()
        report.add(self._recalculate(slot_id, tenant_id))
        PrometheusMetrics.record_capacity_corrections(report.slots_updated)
        return report

    @BaseService.measure_operation("recalculate_all_slot_capacities")
    def recalculate_all(self, *, tenant_id: Optional[str] = None) -> ReconciliationReport:
        report = ReconciliationReport()
        for slot_id in self.slot_repository.list_ids(tenant_id):
            try:
                correction = self._recalculate(slot_id, tenant_id)
            except NotFoundException:
                # Deleted after the id list was read
                report.slots_skipped += 1
                self.logger.info("Slot %s disappeared during reconciliation; skipped", slot_id)
                continue
            report.add(correction)
        PrometheusMetrics.record_capacity_corrections(report.slots_updated)
        self.log_operation(
            "recalculate_all_slot_capacities",
            tenant_id=tenant_id,
            slots_checked=report.slots_checked,
            slots_updated=report.slots_updated,
            slots_skipped=report.slots_skipped,
        )
        return report

    def _recalculate(self, slot_id: str, tenant_id: Optional[str]) -> CapacityCorrection:
        with self.transaction():
            slot = self.slot_repository.get_for_update(slot_id, tenant_id)
            if slot is None:
                raise NotFoundException(f"Slot {slot_id} not found", code="SLOT_NOT_FOUND")

            active_count, booked = self.booking_repository.active_visitor_stats(slot.id)
            available = max(slot.original_capacity - booked, 0)
            correction = CapacityCorrection(
                slot_id=slot.id,
                slot_date=slot.slot_date,
                start_time=slot.start_time,
                original_capacity=slot.original_capacity,
                old_available_capacity=slot.available_capacity,
                new_available_capacity=available,
                old_booked_count=slot.booked_count,
                new_booked_count=booked,
                active_booking_count=active_count,
            )
            if correction.changed:
                slot.available_capacity = available
                slot.booked_count = booked

        if booked > slot.original_capacity:
            self.logger.error(
                "Slot %s is oversold: %s active visitors for capacity %s",
                slot.id,
                booked,
                slot.original_capacity,
            )
        if correction.changed:
            self.logger.warning(
                "Corrected slot %s: available %s -> %s, booked %s -> %s",
                slot.id,
                correction.old_available_capacity,
                correction.new_available_capacity,
                correction.old_booked_count,
                correction.new_booked_count,
            )
        return correction
