"""Lock acquisition, expiry, release and validation."""

import pytest
from sqlalchemy import update

from bookati.core.config import settings
from bookati.core.exceptions import (
    CapacityExceededException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from bookati.core.timezone_utils import ensure_utc, now_utc
from bookati.models.booking_lock import BookingLock
from bookati.models.slot import Slot
from bookati.services.booking_lock_service import BookingLockService
from bookati.services.slot_service import SlotService
from tests.helpers import OTHER_TENANT_ID, TENANT_ID, expire_lock


@pytest.fixture
def locks(db):
    return BookingLockService(db)


class TestAcquireLock:
    def test_lock_reserves_without_touching_counters(self, db, make_slot, locks):
        slot = make_slot(capacity=10)

        lock = locks.acquire_lock(slot.id, 3, 120, tenant_id=TENANT_ID, session_id="sess-1")

        assert lock.reserved_capacity == 3
        assert lock.reserved_by_session_id == "sess-1"
        assert lock.tenant_id == TENANT_ID
        db.expire_all()
        stored = db.get(Slot, slot.id)
        assert (stored.available_capacity, stored.booked_count) == (10, 0)
        assert locks.get_lock(lock.id, TENANT_ID).id == lock.id

    def test_second_lock_cannot_exceed_claimable(self, make_slot, locks):
        slot = make_slot(capacity=10)
        locks.acquire_lock(slot.id, 7, tenant_id=TENANT_ID)

        with pytest.raises(CapacityExceededException) as exc_info:
            locks.acquire_lock(slot.id, 4, tenant_id=TENANT_ID)

        assert exc_info.value.details["claimable"] == 3
        assert locks.acquire_lock(slot.id, 3, tenant_id=TENANT_ID).reserved_capacity == 3

    def test_fully_booked_slot_rejects_locks(self, db, make_slot, locks):
        slot = make_slot(capacity=10)
        db.execute(
            update(Slot).where(Slot.id == slot.id).values(available_capacity=0, booked_count=10)
        )
        db.commit()

        with pytest.raises(CapacityExceededException):
            locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)

    def test_expired_lock_no_longer_counts(self, db, make_slot, locks):
        slot = make_slot(capacity=2)
        first = locks.acquire_lock(slot.id, 2, tenant_id=TENANT_ID)
        expire_lock(db, first.id)

        second = locks.acquire_lock(slot.id, 2, tenant_id=TENANT_ID)

        assert second.reserved_capacity == 2

    def test_unavailable_slot(self, slot, locks, db):
        SlotService(db).set_availability(slot.id, False, TENANT_ID)

        with pytest.raises(SlotUnavailableException):
            locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)

    def test_other_tenant_gets_not_found(self, slot, locks):
        with pytest.raises(NotFoundException):
            locks.acquire_lock(slot.id, 1, tenant_id=OTHER_TENANT_ID)

    @pytest.mark.parametrize("ttl", [0, 901])
    def test_ttl_outside_bounds(self, slot, locks, ttl):
        with pytest.raises(ValidationException) as exc_info:
            locks.acquire_lock(slot.id, 1, ttl, tenant_id=TENANT_ID)

        assert exc_info.value.code == "INVALID_TTL"

    def test_default_ttl_applied(self, db, slot, locks, monkeypatch):
        monkeypatch.setattr(settings, "lock_default_ttl_seconds", 30)

        lock = locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)

        remaining = (ensure_utc(lock.lock_expires_at) - now_utc()).total_seconds()
        assert 25 <= remaining <= 35

    def test_zero_visitors_rejected(self, slot, locks):
        with pytest.raises(ValidationException):
            locks.acquire_lock(slot.id, 0, tenant_id=TENANT_ID)


class TestReleaseAndSweep:
    def test_release_frees_capacity(self, make_slot, locks):
        slot = make_slot(capacity=1)
        lock = locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)

        assert locks.release_lock(lock.id, tenant_id=TENANT_ID) is True
        assert locks.release_lock(lock.id, tenant_id=TENANT_ID) is False
        assert locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID).reserved_capacity == 1

    def test_release_ignores_other_tenant(self, slot, locks):
        lock = locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)

        assert locks.release_lock(lock.id, tenant_id=OTHER_TENANT_ID) is False
        assert locks.validate_lock(lock.id) is True

    def test_sweep_removes_only_expired(self, db, slot, locks):
        stale = locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)
        fresh = locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)
        expire_lock(db, stale.id)

        assert locks.sweep_expired_locks() == 1
        db.expire_all()
        remaining = {row.id for row in db.query(BookingLock).all()}
        assert remaining == {fresh.id}
        assert locks.sweep_expired_locks() == 0


class TestValidateLock:
    def test_session_bound_lock(self, slot, locks):
        lock = locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID, session_id="sess-1")

        assert locks.validate_lock(lock.id, "sess-1") is True
        assert locks.validate_lock(lock.id, "sess-2") is False
        assert locks.validate_lock(lock.id, None) is False

    def test_unbound_lock_valid_for_anyone(self, slot, locks):
        lock = locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)

        assert locks.validate_lock(lock.id, "anyone") is True
        assert locks.validate_lock(lock.id, tenant_id=OTHER_TENANT_ID) is False

    def test_expired_or_malformed(self, db, slot, locks):
        lock = locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)
        expire_lock(db, lock.id)

        assert locks.validate_lock(lock.id) is False
        assert locks.validate_lock("not-a-ulid") is False
        assert locks.validate_lock("") is False

    def test_active_totals(self, make_slot, locks):
        first = make_slot()
        second = make_slot()
        locks.acquire_lock(first.id, 2, tenant_id=TENANT_ID)
        locks.acquire_lock(first.id, 1, tenant_id=TENANT_ID)

        totals = locks.get_active_lock_totals([first.id, second.id], TENANT_ID)

        assert totals.get(first.id) == 3
        assert totals.get(second.id, 0) == 0

    def test_get_lock_other_tenant(self, slot, locks):
        lock = locks.acquire_lock(slot.id, 1, tenant_id=TENANT_ID)

        with pytest.raises(NotFoundException):
            locks.get_lock(lock.id, OTHER_TENANT_ID)
