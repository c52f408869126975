# backend/bookati/services/slot_service.py
"""
Slot Store service.

Owns the capacity counters on ``slots``:

    available_capacity + booked_count == original_capacity

Every mutation runs against a row that the current transaction holds with
SELECT ... FOR UPDATE. Booking locks never change these counters; the
capacity a new lock may claim is derived at check time as
``original - booked - sum(active locks)``.

Claims are checked strictly. Releases are clamped into range so that a
slot whose counters drifted can still give capacity back; the drift is
logged and left for reconciliation.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    CapacityInvariantViolation,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import is_valid_timezone, local_to_utc, now_utc
from ..core.ulid_helper import generate_ulid
from ..models.service import Service
from ..models.slot import Slot
from ..repositories.booking_lock_repository import BookingLockRepository
from ..repositories.shift_repository import ServiceRepository, ShiftRepository
from ..repositories.slot_repository import SlotRepository
from .base import BaseService

logger = logging.getLogger(__name__)


def postgres_dow(day: date) -> int:
    """Day of week with 0 = Sunday, matching PostgreSQL EXTRACT(DOW)."""
    return (day.weekday() + 1) % 7


@dataclass
class SlotGenerationResult:
    shift_id: str
    start_date: date
    end_date: date
    slots_created: int
    slots_skipped: int


@dataclass
class SlotAvailability:
    """Point-in-time view of what a new lock could still claim on a slot."""

    slot_id: str
    original_capacity: int
    available_capacity: int
    booked_count: int
    active_lock_capacity: int
    claimable_capacity: int
    is_available: bool


@dataclass
class ServiceCapacitySync:
    """Outcome of pushing a service's capacity onto its upcoming slots."""

    service_id: str
    service_name: str
    capacity_per_slot: int
    from_date: date
    slots_updated: int = 0
    oversold_slot_ids: List[str] = field(default_factory=list)


class SlotService(BaseService):
    """Slot generation, capacity adjustment and availability queries."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.slot_repository = SlotRepository(db)
        self.shift_repository = ShiftRepository(db)
        self.service_repository = ServiceRepository(db)
        self.lock_repository = BookingLockRepository(db)

    # ------------------------------------------------------------- generation
    @BaseService.measure_operation("create_slots_for_shift")
    def create_slots_for_shift(
        self,
        shift_id: str,
        start_date: date,
        end_date: date,
        *,
        tenant_id: Optional[str] = None,
    ) -> SlotGenerationResult:
        """
        Expand a shift's weekly rule into slots for every matching date in range.

        Re-running over an overlapping range is safe: rows that already exist
        for (shift, date, start_time) are skipped by the uniqueness constraint.
        """
        if end_date < start_date:
            raise ValidationException("end_date must not be before start_date")
        span_days = (end_date - start_date).days + 1
        if span_days > settings.slot_generation_max_days:
            raise ValidationException(
                f"Date range too large: {span_days} days "
                f"(max {settings.slot_generation_max_days})",
                code="RANGE_TOO_LARGE",
            )

        with self.transaction():
            shift = self.shift_repository.get_with_service(shift_id, tenant_id)
            if shift is None:
                raise NotFoundException(f"Shift {shift_id} not found", code="SHIFT_NOT_FOUND")
            if not is_valid_timezone(shift.timezone):
                raise ValidationException(f"Unknown timezone: {shift.timezone}")

            rows = self._build_slot_rows(shift, start_date, end_date)
            created = self.slot_repository.insert_ignoring_duplicates(rows)

        self.log_operation(
            "create_slots_for_shift",
            shift_id=shift_id,
            slots_created=created,
            slots_skipped=len(rows) - created,
        )
        return SlotGenerationResult(
            shift_id=shift_id,
            start_date=start_date,
            end_date=end_date,
            slots_created=created,
            slots_skipped=len(rows) - created,
        )

    def _build_slot_rows(
        self, shift: Any, start_date: date, end_date: date
    ) -> List[Dict[str, Any]]:
        service = shift.service
        duration_minutes = (
            shift.slot_duration_minutes
            or (service.duration_minutes if service is not None else None)
            or settings.slot_granularity_minutes
        )
        capacity = shift.capacity_per_slot
        if capacity is None:
            capacity = service.capacity_per_slot if service is not None else 0
        duration = timedelta(minutes=duration_minutes)
        days = {int(d) for d in (shift.days_of_week or [])}

        rows: List[Dict[str, Any]] = []
        current = start_date
        while current <= end_date:
            if postgres_dow(current) in days:
                slot_start = datetime.combine(current, shift.start_time)
                shift_end = datetime.combine(current, shift.end_time)
                while slot_start + duration <= shift_end:
                    slot_end = slot_start + duration
                    rows.append(
                        {
                            "id": generate_ulid(),
                            "tenant_id": shift.tenant_id,
                            "shift_id": shift.id,
                            "slot_date": current,
                            "start_time": slot_start.time(),
                            "end_time": slot_end.time(),
                            "start_time_utc": local_to_utc(
                                current, slot_start.time(), shift.timezone
                            ),
                            "end_time_utc": local_to_utc(current, slot_end.time(), shift.timezone),
                            "original_capacity": capacity,
                            "available_capacity": capacity,
                            "booked_count": 0,
                            "is_available": True,
                        }
                    )
                    slot_start = slot_end
            current += timedelta(days=1)
        return rows

    # --------------------------------------------------------------- capacity
    def apply_capacity_delta(
        self, slot: Slot, delta: int, visitor_delta: Optional[int] = None
    ) -> Slot:
        """
        Apply ``available += delta`` and ``booked += visitor_delta`` to a locked slot.

        ``visitor_delta`` defaults to ``-delta``. The caller must already hold
        the row lock and owns the transaction.

        Claims (``delta <= 0``) are strict: a result outside
        ``[0, original_capacity]`` or one that breaks conservation raises
        CapacityInvariantViolation. Releases (``delta > 0``) are clamped the
        same way reconciliation rebuilds counters, so a booking can always be
        cancelled even when the slot has drifted.
        """
        if visitor_delta is None:
            visitor_delta = -delta
        if delta > 0 and visitor_delta <= 0:
            return self._release_capacity(slot, delta, visitor_delta)

        new_available = slot.available_capacity + delta
        new_booked = slot.booked_count + visitor_delta
        original = slot.original_capacity

        if (
            new_available < 0
            or new_booked < 0
            or new_available > original
            or new_booked > original
            or new_available + new_booked != original
        ):
            details = {
                "slot_id": slot.id,
                "original_capacity": original,
                "available_capacity": slot.available_capacity,
                "booked_count": slot.booked_count,
                "delta": delta,
                "visitor_delta": visitor_delta,
            }
            self.logger.error("Capacity invariant violation on slot %s: %s", slot.id, details)
            raise CapacityInvariantViolation(
                f"Capacity adjustment would break invariants on slot {slot.id}", details
            )

        slot.available_capacity = new_available
        slot.booked_count = new_booked
        self.db.flush()
        return slot

    def _release_capacity(self, slot: Slot, delta: int, visitor_delta: int) -> Slot:
        original = slot.original_capacity
        new_booked = max(slot.booked_count + visitor_delta, 0)
        new_available = max(original - new_booked, 0)

        if (
            new_booked != slot.booked_count + visitor_delta
            or new_available != slot.available_capacity + delta
        ):
            self.logger.warning(
                "Clamped capacity release on drifted slot %s: "
                "available %s%+d -> %s, booked %s%+d -> %s (original %s)",
                slot.id,
                slot.available_capacity,
                delta,
                new_available,
                slot.booked_count,
                visitor_delta,
                new_booked,
                original,
            )

        slot.available_capacity = new_available
        slot.booked_count = new_booked
        self.db.flush()
        return slot

    @BaseService.measure_operation("adjust_capacity")
    def adjust_capacity(
        self,
        slot_id: str,
        delta: int,
        visitor_delta: Optional[int] = None,
        *,
        tenant_id: Optional[str] = None,
    ) -> Slot:
        """Lock the slot row and apply a capacity delta in its own transaction."""
        with self.transaction():
            slot = self.slot_repository.get_for_update(slot_id, tenant_id)
            if slot is None:
                raise NotFoundException(f"Slot {slot_id} not found", code="SLOT_NOT_FOUND")
            self.apply_capacity_delta(slot, delta, visitor_delta)
        return slot

    # ---------------------------------------------------------------- queries
    def get_slot(self, slot_id: str, tenant_id: Optional[str] = None) -> Slot:
        slot = self.slot_repository.get_for_tenant(slot_id, tenant_id)
        if slot is None:
            raise NotFoundException(f"Slot {slot_id} not found", code="SLOT_NOT_FOUND")
        return slot

    def list_slots(
        self,
        tenant_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Slot]:
        return self.slot_repository.list_for_tenant(tenant_id, start_date, end_date)

    @BaseService.measure_operation("get_claimable_capacity")
    def get_claimable_capacity(
        self, slot_id: str, tenant_id: Optional[str] = None
    ) -> SlotAvailability:
        slot = self.get_slot(slot_id, tenant_id)
        active = self.lock_repository.sum_active_reserved(slot.id, now_utc())
        return SlotAvailability(
            slot_id=slot.id,
            original_capacity=slot.original_capacity,
            available_capacity=slot.available_capacity,
            booked_count=slot.booked_count,
            active_lock_capacity=active,
            claimable_capacity=max(slot.original_capacity - slot.booked_count - active, 0),
            is_available=bool(slot.is_available),
        )

    @BaseService.measure_operation("set_slot_availability")
    def set_availability(
        self, slot_id: str, is_available: bool, tenant_id: Optional[str] = None
    ) -> Slot:
        """Open or close a slot for new locks without touching its counters."""
        with self.transaction():
            slot = self.slot_repository.get_for_update(slot_id, tenant_id)
            if slot is None:
                raise NotFoundException(f"Slot {slot_id} not found", code="SLOT_NOT_FOUND")
            slot.is_available = is_available
        self.log_operation("set_slot_availability", slot_id=slot_id, is_available=is_available)
        return slot

    # ------------------------------------------------------- service capacity
    def apply_service_capacity(
        self, service: Service, from_date: Optional[date] = None
    ) -> ServiceCapacitySync:
        """
        Rebase upcoming slots on the service's current ``capacity_per_slot``.

        Each slot gets ``original = capacity`` and
        ``available = max(capacity - booked, 0)``; bookings are never touched,
        so shrinking below what is already booked leaves the slot oversold
        until bookings are cancelled. The caller owns the transaction.
        """
        start = from_date or now_utc().date()
        capacity = service.capacity_per_slot
        result = ServiceCapacitySync(
            service_id=service.id,
            service_name=service.name,
            capacity_per_slot=capacity,
            from_date=start,
        )
        slots = self.slot_repository.list_following_service_capacity(
            service.id, start, for_update=True
        )
        for slot in slots:
            available = max(capacity - slot.booked_count, 0)
            if slot.original_capacity == capacity and slot.available_capacity == available:
                continue
            slot.original_capacity = capacity
            slot.available_capacity = available
            result.slots_updated += 1
            if slot.booked_count > capacity:
                result.oversold_slot_ids.append(slot.id)

        if result.slots_updated:
            self.db.flush()
        if result.oversold_slot_ids:
            self.logger.warning(
                "Service %s capacity %s is below bookings already held on %s slot(s): %s",
                service.id,
                capacity,
                len(result.oversold_slot_ids),
                result.oversold_slot_ids,
            )
        return result

    @BaseService.measure_operation("update_slots_on_service_capacity_change")
    def update_slots_on_service_capacity_change(
        self,
        service_id: str,
        *,
        tenant_id: Optional[str] = None,
        from_date: Optional[date] = None,
    ) -> ServiceCapacitySync:
        """Push one service's capacity onto its slots from ``from_date`` (default today)."""
        with self.transaction():
            service = self.service_repository.get_for_tenant(service_id, tenant_id)
            if service is None:
                raise NotFoundException(f"Service {service_id} not found", code="SERVICE_NOT_FOUND")
            result = self.apply_service_capacity(service, from_date)

        self.log_operation(
            "update_slots_on_service_capacity_change",
            service_id=service_id,
            capacity_per_slot=result.capacity_per_slot,
            slots_updated=result.slots_updated,
        )
        return result

    @BaseService.measure_operation("sync_all_slots_with_service_capacity")
    def sync_all_slots_with_service_capacity(
        self, *, tenant_id: Optional[str] = None, from_date: Optional[date] = None
    ) -> List[ServiceCapacitySync]:
        """Repair upcoming slots of every service, one transaction per service."""
        results: List[ServiceCapacitySync] = []
        for service_id in self.service_repository.list_ids(tenant_id):
            try:
                results.append(
                    self.update_slots_on_service_capacity_change(
                        service_id, tenant_id=tenant_id, from_date=from_date
                    )
                )
            except NotFoundException:
                self.logger.info("Service %s removed during capacity sync; skipped", service_id)
        self.log_operation(
            "sync_all_slots_with_service_capacity",
            tenant_id=tenant_id,
            services=len(results),
            slots_updated=sum(r.slots_updated for r in results),
        )
        return results
