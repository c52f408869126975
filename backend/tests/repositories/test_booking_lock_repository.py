"""Active-lock arithmetic is evaluated in SQL against the caller's clock."""

from datetime import datetime, timedelta, timezone

import pytest

from bookati.repositories.booking_lock_repository import BookingLockRepository
from tests.helpers import OTHER_TENANT_ID, TENANT_ID


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def repo(db):
    return BookingLockRepository(db)


def _lock(repo, slot, capacity, expires_at, tenant_id=TENANT_ID):
    return repo.create(
        tenant_id=tenant_id,
        slot_id=slot.id,
        reserved_capacity=capacity,
        lock_expires_at=expires_at,
    )


class TestBookingLockRepository:
    def test_sum_active_reserved_ignores_expired_locks(self, db, repo, slot, now):
        _lock(repo, slot, 2, now + timedelta(minutes=5))
        _lock(repo, slot, 1, now + timedelta(minutes=1))
        _lock(repo, slot, 4, now - timedelta(seconds=1))

        assert repo.sum_active_reserved(slot.id, now) == 3

    def test_sum_active_reserved_can_leave_out_one_session(self, repo, slot, now):
        expires = now + timedelta(minutes=5)
        repo.create(
            tenant_id=TENANT_ID,
            slot_id=slot.id,
            reserved_capacity=2,
            reserved_by_session_id="sess-1",
            lock_expires_at=expires,
        )
        _lock(repo, slot, 1, expires)

        assert repo.sum_active_reserved(slot.id, now, exclude_session_id="sess-1") == 1
        assert repo.sum_active_reserved(slot.id, now, exclude_session_id="sess-2") == 3

    def test_sum_active_reserved_is_zero_without_locks(self, repo, slot, now):
        assert repo.sum_active_reserved(slot.id, now) == 0

    def test_active_totals_reports_every_requested_slot(self, db, repo, make_slot, now):
        first = make_slot()
        second = make_slot()
        _lock(repo, first, 2, now + timedelta(minutes=5))
        _lock(repo, first, 1, now + timedelta(minutes=5))
        _lock(repo, second, 3, now - timedelta(minutes=5))

        totals = repo.active_totals([first.id, second.id, "missing"], now)

        assert totals == {first.id: 3, second.id: 0, "missing": 0}

    def test_active_totals_scoped_by_tenant(self, repo, slot, now):
        _lock(repo, slot, 2, now + timedelta(minutes=5))

        assert repo.active_totals([slot.id], now, OTHER_TENANT_ID) == {slot.id: 0}
        assert repo.active_totals([slot.id], now, TENANT_ID) == {slot.id: 2}

    def test_is_active(self, repo, slot, now):
        live = _lock(repo, slot, 1, now + timedelta(minutes=5))
        stale = _lock(repo, slot, 1, now - timedelta(minutes=5))

        assert repo.is_active(live.id, now) is True
        assert repo.is_active(stale.id, now) is False
        assert repo.is_active("missing", now) is False

    def test_delete_lock_reports_whether_a_row_was_removed(self, repo, slot, now):
        lock = _lock(repo, slot, 1, now + timedelta(minutes=5))

        assert repo.delete_lock(lock.id) is True
        assert repo.delete_lock(lock.id) is False

    def test_delete_expired_keeps_live_locks(self, db, repo, slot, now):
        live = _lock(repo, slot, 1, now + timedelta(minutes=5))
        _lock(repo, slot, 1, now - timedelta(minutes=5))
        _lock(repo, slot, 1, now - timedelta(seconds=1))

        assert repo.delete_expired(now) == 2
        db.expire_all()
        assert [lock.id for lock in repo.find_by(slot_id=slot.id)] == [live.id]

    def test_delete_expired_for_one_tenant(self, db, repo, make_slot, now):
        ours = make_slot()
        theirs = make_slot(tenant_id=OTHER_TENANT_ID)
        _lock(repo, ours, 1, now - timedelta(minutes=1))
        _lock(repo, theirs, 1, now - timedelta(minutes=1), tenant_id=OTHER_TENANT_ID)

        assert repo.delete_expired(now, TENANT_ID) == 1
        assert repo.count(tenant_id=OTHER_TENANT_ID) == 1
