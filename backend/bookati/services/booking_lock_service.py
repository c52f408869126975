# backend/bookati/services/booking_lock_service.py
"""
Booking Lock Manager.

A lock claims capacity on a slot for a short TTL so that the booking that
follows cannot be oversold. Acquisition holds the slot row lock while it
sums the unexpired reservations, which is what stops two concurrent
acquirers from both passing the check for the last unit:

    booked_count + sum(active locks) + requested <= original_capacity

Expired locks stop counting immediately; the periodic sweep only removes
their rows.
"""

from datetime import timedelta
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    CapacityExceededException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import now_utc
from ..core.ulid_helper import is_valid_ulid
from ..models.booking_lock import BookingLock
from ..monitoring.prometheus_metrics import PrometheusMetrics
from ..repositories.booking_lock_repository import BookingLockRepository
from ..repositories.slot_repository import SlotRepository
from .base import BaseService


class BookingLockService(BaseService):
    """Acquire, release, validate and sweep booking locks."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.lock_repository = BookingLockRepository(db)
        self.slot_repository = SlotRepository(db)

    def _resolve_ttl(self, ttl_seconds: Optional[int]) -> int:
        ttl = settings.lock_default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl < settings.lock_min_ttl_seconds or ttl > settings.lock_max_ttl_seconds:
            raise ValidationException(
                f"ttl_seconds must be between {settings.lock_min_ttl_seconds} "
                f"and {settings.lock_max_ttl_seconds}",
                code="INVALID_TTL",
                details={"ttl_seconds": ttl},
            )
        return ttl

    @BaseService.measure_operation("acquire_lock")
    def acquire_lock(
        self,
        slot_id: str,
        requested_capacity: int,
        ttl_seconds: Optional[int] = None,
        *,
        tenant_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> BookingLock:
        """
        Reserve ``requested_capacity`` on a slot until the lock expires.

        Raises:
            NotFoundException: slot missing or owned by another tenant
            SlotUnavailableException: slot disabled by its owner
            CapacityExceededException: not enough claimable capacity
        """
        if requested_capacity < 1:
            raise ValidationException("requested capacity must be at least 1")
        ttl = self._resolve_ttl(ttl_seconds)

        with self.transaction():
            slot = self.slot_repository.get_for_update(slot_id, tenant_id)
            if slot is None:
                raise NotFoundException(f"Slot {slot_id} not found", code="SLOT_NOT_FOUND")
            if not slot.is_available:
                PrometheusMetrics.record_lock_event("acquire", "unavailable")
                raise SlotUnavailableException(slot.id)

            now = now_utc()
            active = self.lock_repository.sum_active_reserved(slot.id, now)
            claimable = slot.original_capacity - slot.booked_count - active
            if requested_capacity > claimable:
                PrometheusMetrics.record_lock_event("acquire", "denied")
                self.logger.info(
                    "Lock denied on slot %s: requested=%s claimable=%s (booked=%s locked=%s)",
                    slot.id,
                    requested_capacity,
                    claimable,
                    slot.booked_count,
                    active,
                )
                raise CapacityExceededException(requested_capacity, claimable, slot_id=slot.id)

            lock = self.lock_repository.create(
                tenant_id=slot.tenant_id,
                slot_id=slot.id,
                reserved_capacity=requested_capacity,
                reserved_by_session_id=session_id,
                lock_expires_at=now + timedelta(seconds=ttl),
            )

        PrometheusMetrics.record_lock_event("acquire", "granted")
        self.log_operation(
            "acquire_lock",
            lock_id=lock.id,
            slot_id=slot_id,
            reserved_capacity=requested_capacity,
            ttl_seconds=ttl,
        )
        return lock

    @BaseService.measure_operation("release_lock")
    def release_lock(self, lock_id: str, *, tenant_id: Optional[str] = None) -> bool:
        """
        Delete a lock so its capacity is claimable again before the TTL.

        Returns False when the lock was already gone (consumed, swept or
        released), which callers treat as success.
        """
        with self.transaction():
            lock = self.lock_repository.get_by_id(lock_id)
            if lock is None or (tenant_id is not None and lock.tenant_id != tenant_id):
                return False
            # Slot first, matching the order every capacity path uses
            self.slot_repository.get_for_update(lock.slot_id)
            released = self.lock_repository.delete_lock(lock_id)

        if released:
            PrometheusMetrics.record_lock_event("release")
            self.log_operation("release_lock", lock_id=lock_id)
        return released

    @BaseService.measure_operation("sweep_expired_locks")
    def sweep_expired_locks(self, *, tenant_id: Optional[str] = None) -> int:
        """Delete every lock at or past its expiry; returns the number removed."""
        with self.transaction():
            removed = self.lock_repository.delete_expired(now_utc(), tenant_id)
        if removed:
            PrometheusMetrics.record_lock_event("sweep", count=removed)
            self.logger.info("Swept %s expired booking locks", removed)
        return removed

    def validate_lock(
        self, lock_id: str, session_id: Optional[str] = None, tenant_id: Optional[str] = None
    ) -> bool:
        """
        True when the lock exists, is unexpired and belongs to ``session_id``.

        A lock created without a session id is valid for any caller.
        """
        if not lock_id or not is_valid_ulid(lock_id):
            return False
        lock = self.lock_repository.get_by_id(lock_id)
        if lock is None or not self.lock_repository.is_active(lock_id, now_utc()):
            return False
        if tenant_id is not None and lock.tenant_id != tenant_id:
            return False
        if lock.reserved_by_session_id and lock.reserved_by_session_id != session_id:
            return False
        return True

    def get_active_lock_totals(
        self, slot_ids: Iterable[str], tenant_id: Optional[str] = None
    ) -> Dict[str, int]:
        """Capacity held by unexpired locks, per slot id."""
        return self.lock_repository.active_totals(slot_ids, now_utc(), tenant_id)

    def get_lock(self, lock_id: str, tenant_id: Optional[str] = None) -> BookingLock:
        lock = self.lock_repository.get_by_id(lock_id)
        if lock is None or (tenant_id is not None and lock.tenant_id != tenant_id):
            raise NotFoundException(f"Lock {lock_id} not found", code="LOCK_NOT_FOUND")
        return lock
