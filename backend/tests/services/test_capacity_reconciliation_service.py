"""Rebuilding slot counters from active bookings."""

import pytest
from sqlalchemy import update

from bookati.core.exceptions import NotFoundException
from bookati.models.booking import Booking
from bookati.models.slot import Slot
from bookati.services.booking_lock_service import BookingLockService
from bookati.services.booking_service import BookingService
from bookati.services.capacity_reconciliation_service import CapacityReconciliationService
from tests.helpers import OTHER_TENANT_ID, TENANT_ID


def _book(db, slot, visitors):
    lock = BookingLockService(db).acquire_lock(slot.id, visitors, tenant_id=TENANT_ID)
    return BookingService(db).create_booking(lock.id, slot.id, visitors, tenant_id=TENANT_ID)


def _corrupt(db, slot_id, available, booked):
    db.execute(
        update(Slot)
        .where(Slot.id == slot_id)
        .values(available_capacity=available, booked_count=booked)
    )
    db.commit()


@pytest.fixture
def reconciler(db):
    return CapacityReconciliationService(db)


class TestRecalculateSlotCapacity:
    def test_fixes_drift_from_active_bookings(self, db, slot, reconciler):
        _book(db, slot, 2)
        cancelled = _book(db, slot, 1)
        BookingService(db).transition_status(cancelled.id, "cancelled", tenant_id=TENANT_ID)
        _corrupt(db, slot.id, available=1, booked=4)

        report = reconciler.recalculate_slot_capacity(slot.id, tenant_id=TENANT_ID)

        assert report.slots_checked == 1
        assert report.slots_updated == 1
        [correction] = report.corrections
        assert (correction.old_available_capacity, correction.old_booked_count) == (1, 4)
        assert (correction.new_available_capacity, correction.new_booked_count) == (3, 2)
        assert correction.active_booking_count == 1

    def test_second_run_changes_nothing(self, db, slot, reconciler):
        _book(db, slot, 2)
        _corrupt(db, slot.id, available=5, booked=0)

        reconciler.recalculate_slot_capacity(slot.id)
        report = reconciler.recalculate_slot_capacity(slot.id)

        assert report.slots_checked == 1
        assert report.slots_updated == 0
        assert report.corrections == []

    def test_oversold_slot_clamps_available_at_zero(self, db, slot, reconciler):
        _book(db, slot, 4)
        db.execute(update(Slot).where(Slot.id == slot.id).values(original_capacity=3))
        db.commit()

        report = reconciler.recalculate_slot_capacity(slot.id)

        [correction] = report.corrections
        assert correction.new_available_capacity == 0
        assert correction.new_booked_count == 4

    def test_unknown_or_foreign_slot(self, slot, reconciler):
        with pytest.raises(NotFoundException):
            reconciler.recalculate_slot_capacity(slot.id, tenant_id=OTHER_TENANT_ID)


class TestRecalculateAll:
    def test_only_touches_requested_tenant(self, db, make_slot, reconciler):
        ours = make_slot()
        theirs = make_slot(tenant_id=OTHER_TENANT_ID)
        _corrupt(db, ours.id, available=0, booked=5)
        _corrupt(db, theirs.id, available=0, booked=5)

        report = reconciler.recalculate_all(tenant_id=TENANT_ID)

        assert report.slots_checked == 1
        assert report.slots_updated == 1
        db.expire_all()
        assert db.get(Slot, ours.id).available_capacity == 5
        assert db.get(Slot, theirs.id).available_capacity == 0

    def test_report_serialises_corrections(self, db, slot, reconciler):
        _corrupt(db, slot.id, available=2, booked=3)

        report = reconciler.recalculate_all()

        assert report.corrections[0].to_dict()["new_available_capacity"] == 5
        assert db.query(Booking).count() == 0

    def test_slot_removed_after_listing_is_skipped(self, db, slot, reconciler, monkeypatch):
        _corrupt(db, slot.id, available=2, booked=3)
        monkeypatch.setattr(
            reconciler.slot_repository,
            "list_ids",
            lambda tenant_id=None: ["01ARZ3NDEKTSV4RRFFQ69G5FAV", slot.id],
        )

        report = reconciler.recalculate_all(tenant_id=TENANT_ID)

        assert report.slots_skipped == 1
        assert report.slots_checked == 1
        assert report.slots_updated == 1
        db.expire_all()
        assert db.get(Slot, slot.id).available_capacity == 5
