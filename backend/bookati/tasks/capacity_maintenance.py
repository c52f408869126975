# backend/bookati/tasks/capacity_maintenance.py
"""
Periodic capacity maintenance tasks.

- ``capacity.sweep_expired_locks`` deletes lock rows past their TTL.
- ``capacity.reconcile_all_slots`` rebuilds slot counters from bookings.
- ``capacity.reconcile_slot`` repairs a single slot on demand.
"""

from contextlib import contextmanager
import logging
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from celery import shared_task
from sqlalchemy.orm import Session

from bookati.database import SessionLocal
from bookati.services.booking_lock_service import BookingLockService
from bookati.services.capacity_reconciliation_service import CapacityReconciliationService

logger = logging.getLogger(__name__)

_TaskFunc = TypeVar("_TaskFunc", bound=Callable[..., Any])


def _typed_shared_task(*args: Any, **kwargs: Any) -> Callable[[_TaskFunc], _TaskFunc]:
    """Typed wrapper for Celery's shared_task decorator."""
    return cast(Callable[[_TaskFunc], _TaskFunc], shared_task(*args, **kwargs))


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Session for one task run; services commit their own transactions."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@_typed_shared_task(name="capacity.sweep_expired_locks", ignore_result=True)
def sweep_expired_locks(tenant_id: Optional[str] = None) -> int:
    """Delete expired booking locks; returns how many were removed."""
    with _session_scope() as db:
        removed = BookingLockService(db).sweep_expired_locks(tenant_id=tenant_id)
    if removed:
        logger.info("[CAPACITY] Swept %d expired booking locks", removed)
    return removed


@_typed_shared_task(name="capacity.reconcile_all_slots")
def reconcile_all_slots(tenant_id: Optional[str] = None) -> Dict[str, Any]:
    """Recalculate every slot's counters (optionally one tenant's)."""
    with _session_scope() as db:
        report = CapacityReconciliationService(db).recalculate_all(tenant_id=tenant_id)
    logger.info(
        "[CAPACITY] Reconciliation checked %d slots, corrected %d",
        report.slots_checked,
        report.slots_updated,
    )
    return {
        "slots_checked": report.slots_checked,
        "slots_updated": report.slots_updated,
        "slots_skipped": report.slots_skipped,
        "corrections": [
            {
                **c.to_dict(),
                "slot_date": c.slot_date.isoformat(),
                "start_time": c.start_time.isoformat(),
            }
            for c in report.corrections
        ],
    }


@_typed_shared_task(name="capacity.reconcile_slot")
def reconcile_slot(slot_id: str) -> Dict[str, Any]:
    with _session_scope() as db:
        report = CapacityReconciliationService(db).recalculate_slot_capacity(slot_id)
    return {"slot_id": slot_id, "slots_updated": report.slots_updated}
