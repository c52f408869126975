"""Slot generation and the capacity counter rules."""

from datetime import time, timedelta
import logging

import pytest
from sqlalchemy import update

from bookati.core.config import settings
from bookati.core.exceptions import (
    CapacityInvariantViolation,
    NotFoundException,
    ValidationException,
)
from bookati.models.service import Service
from bookati.models.slot import Slot
from bookati.services.booking_lock_service import BookingLockService
from bookati.services.booking_service import BookingService
from bookati.services.shift_service import ShiftService
from bookati.services.slot_service import SlotService, postgres_dow
from tests.helpers import OTHER_TENANT_ID, SLOT_DATE, TENANT_ID


@pytest.fixture
def shift(db):
    shifts = ShiftService(db)
    service = shifts.create_service(tenant_id=TENANT_ID, name="Kayak", capacity_per_slot=8)
    # Monday and Wednesday, three 30 minute slots each
    return shifts.create_shift(
        tenant_id=TENANT_ID,
        service_id=service.id,
        days_of_week=[1, 3],
        start_time=time(10, 0),
        end_time=time(11, 30),
        slot_duration_minutes=30,
    )


class TestPostgresDow:
    def test_sunday_is_zero(self):
        assert postgres_dow(SLOT_DATE) == 1  # Monday
        assert postgres_dow(SLOT_DATE - timedelta(days=1)) == 0


class TestCreateSlotsForShift:
    def test_generates_slots_for_matching_weekdays(self, db, shift):
        result = SlotService(db).create_slots_for_shift(
            shift.id, SLOT_DATE, SLOT_DATE + timedelta(days=6), tenant_id=TENANT_ID
        )

        assert result.slots_created == 6
        assert result.slots_skipped == 0
        slots = db.query(Slot).filter(Slot.shift_id == shift.id).all()
        assert {s.slot_date for s in slots} == {SLOT_DATE, SLOT_DATE + timedelta(days=2)}
        assert {s.start_time for s in slots} == {time(10, 0), time(10, 30), time(11, 0)}
        for s in slots:
            assert s.original_capacity == 8
            assert s.available_capacity == 8
            assert s.booked_count == 0
            assert s.is_available

    def test_rerun_over_overlapping_range_skips_existing(self, db, shift):
        service = SlotService(db)
        service.create_slots_for_shift(shift.id, SLOT_DATE, SLOT_DATE, tenant_id=TENANT_ID)

        result = service.create_slots_for_shift(
            shift.id, SLOT_DATE, SLOT_DATE + timedelta(days=2), tenant_id=TENANT_ID
        )

        assert result.slots_created == 3
        assert result.slots_skipped == 3
        assert db.query(Slot).filter(Slot.shift_id == shift.id).count() == 6

    def test_end_before_start_rejected(self, db, shift):
        with pytest.raises(ValidationException):
            SlotService(db).create_slots_for_shift(
                shift.id, SLOT_DATE, SLOT_DATE - timedelta(days=1)
            )

    def test_range_too_large(self, db, shift, monkeypatch):
        monkeypatch.setattr(settings, "slot_generation_max_days", 7)

        with pytest.raises(ValidationException) as exc_info:
            SlotService(db).create_slots_for_shift(
                shift.id, SLOT_DATE, SLOT_DATE + timedelta(days=7)
            )

        assert exc_info.value.code == "RANGE_TOO_LARGE"

    def test_other_tenant_cannot_generate(self, db, shift):
        with pytest.raises(NotFoundException):
            SlotService(db).create_slots_for_shift(
                shift.id, SLOT_DATE, SLOT_DATE, tenant_id=OTHER_TENANT_ID
            )


class TestApplyCapacityDelta:
    def test_booking_moves_capacity_between_counters(self, db, slot):
        service = SlotService(db)

        service.apply_capacity_delta(slot, -2, 2)

        assert slot.available_capacity == 3
        assert slot.booked_count == 2

    def test_visitor_delta_defaults_to_negated_delta(self, db, slot):
        service = SlotService(db)
        service.apply_capacity_delta(slot, -3)

        service.apply_capacity_delta(slot, 1)

        assert slot.available_capacity == 3
        assert slot.booked_count == 2

    @pytest.mark.parametrize(
        "delta,visitor_delta",
        [
            (-6, 6),  # below zero available
            (-1, 2),  # breaks conservation
        ],
    )
    def test_invalid_claims_raise_without_clamping(self, db, slot, delta, visitor_delta):
        with pytest.raises(CapacityInvariantViolation):
            SlotService(db).apply_capacity_delta(slot, delta, visitor_delta)

        assert slot.available_capacity == 5
        assert slot.booked_count == 0

    def test_release_on_drifted_slot_is_clamped(self, db, slot, caplog):
        with caplog.at_level(logging.WARNING, logger="SlotService"):
            SlotService(db).apply_capacity_delta(slot, 1, -1)

        assert (slot.available_capacity, slot.booked_count) == (5, 0)
        assert "Clamped capacity release" in caplog.text

    def test_release_on_oversold_slot_rebuilds_from_booked(self, db, slot):
        slot.original_capacity = 3
        slot.available_capacity = 0
        slot.booked_count = 4

        SlotService(db).apply_capacity_delta(slot, 1, -1)

        assert (slot.available_capacity, slot.booked_count) == (0, 3)

    def test_clean_release_does_not_warn(self, db, slot, caplog):
        service = SlotService(db)
        service.apply_capacity_delta(slot, -2, 2)

        with caplog.at_level(logging.WARNING, logger="SlotService"):
            service.apply_capacity_delta(slot, 2, -2)

        assert (slot.available_capacity, slot.booked_count) == (5, 0)
        assert "Clamped" not in caplog.text

    def test_adjust_capacity_commits(self, db, slot):
        SlotService(db).adjust_capacity(slot.id, -1, tenant_id=TENANT_ID)

        db.expire_all()
        refreshed = db.get(Slot, slot.id)
        assert (refreshed.available_capacity, refreshed.booked_count) == (4, 1)

    def test_adjust_capacity_unknown_slot(self, db):
        with pytest.raises(NotFoundException):
            SlotService(db).adjust_capacity("01ARZ3NDEKTSV4RRFFQ69G5FAV", -1)


class TestClaimableCapacity:
    def test_active_locks_reduce_claimable_but_not_counters(self, db, slot):
        BookingLockService(db).acquire_lock(slot.id, 2, tenant_id=TENANT_ID)

        availability = SlotService(db).get_claimable_capacity(slot.id, TENANT_ID)

        assert availability.available_capacity == 5
        assert availability.booked_count == 0
        assert availability.active_lock_capacity == 2
        assert availability.claimable_capacity == 3

    def test_other_tenant_sees_not_found(self, db, slot):
        with pytest.raises(NotFoundException):
            SlotService(db).get_claimable_capacity(slot.id, OTHER_TENANT_ID)


class TestSetAvailability:
    def test_closing_keeps_counters(self, db, slot):
        updated = SlotService(db).set_availability(slot.id, False, TENANT_ID)

        assert updated.is_available is False
        assert updated.available_capacity == 5

    def test_list_slots_scoped_to_tenant(self, db, make_slot):
        ours = make_slot()
        make_slot(tenant_id=OTHER_TENANT_ID)

        listed = SlotService(db).list_slots(TENANT_ID)

        assert [s.id for s in listed] == [ours.id]


def _book(db, slot, visitors):
    lock = BookingLockService(db).acquire_lock(slot.id, visitors, tenant_id=TENANT_ID)
    return BookingService(db).create_booking(lock.id, slot.id, visitors, tenant_id=TENANT_ID)


def _counters(db, slot_id):
    db.expire_all()
    stored = db.get(Slot, slot_id)
    return stored.original_capacity, stored.available_capacity, stored.booked_count


class TestServiceCapacitySync:
    def test_capacity_edit_rebases_upcoming_slots(self, db, slot):
        _book(db, slot, 2)

        result = ShiftService(db).update_service(
            slot.shift.service_id, tenant_id=TENANT_ID, capacity_per_slot=8
        )

        assert result.service.capacity_per_slot == 8
        assert result.slot_sync.slots_updated == 1
        assert result.slot_sync.oversold_slot_ids == []
        assert _counters(db, slot.id) == (8, 6, 2)

    def test_shrinking_below_bookings_reports_oversold(self, db, slot, caplog):
        _book(db, slot, 4)

        with caplog.at_level(logging.WARNING, logger="SlotService"):
            result = ShiftService(db).update_service(
                slot.shift.service_id, tenant_id=TENANT_ID, capacity_per_slot=3
            )

        assert result.slot_sync.oversold_slot_ids == [slot.id]
        assert _counters(db, slot.id) == (3, 0, 4)
        assert "below bookings already held" in caplog.text

    def test_edit_without_capacity_change_leaves_slots(self, db, slot):
        result = ShiftService(db).update_service(
            slot.shift.service_id, tenant_id=TENANT_ID, name="Sunset tour", capacity_per_slot=5
        )

        assert result.service.name == "Sunset tour"
        assert result.slot_sync is None
        assert _counters(db, slot.id) == (5, 5, 0)

    def test_negative_capacity_rejected(self, db, slot):
        with pytest.raises(ValidationException):
            ShiftService(db).update_service(
                slot.shift.service_id, tenant_id=TENANT_ID, capacity_per_slot=-1
            )

    def test_other_tenant_cannot_edit_service(self, db, slot):
        with pytest.raises(NotFoundException) as exc_info:
            ShiftService(db).update_service(
                slot.shift.service_id, tenant_id=OTHER_TENANT_ID, capacity_per_slot=9
            )

        assert exc_info.value.code == "SERVICE_NOT_FOUND"

    def test_slots_before_from_date_are_untouched(self, db, slot):
        service_id = slot.shift.service_id
        db.execute(update(Service).where(Service.id == service_id).values(capacity_per_slot=7))
        db.commit()

        result = SlotService(db).update_slots_on_service_capacity_change(
            service_id, tenant_id=TENANT_ID, from_date=SLOT_DATE + timedelta(days=1)
        )

        assert result.slots_updated == 0
        assert _counters(db, slot.id) == (5, 5, 0)

    def test_shift_capacity_override_wins(self, db):
        shifts = ShiftService(db)
        service = shifts.create_service(tenant_id=TENANT_ID, name="Kayak", capacity_per_slot=8)
        shift = shifts.create_shift(
            tenant_id=TENANT_ID,
            service_id=service.id,
            days_of_week=[1],
            start_time=time(10, 0),
            end_time=time(10, 30),
            slot_duration_minutes=30,
            capacity_per_slot=3,
        )
        SlotService(db).create_slots_for_shift(shift.id, SLOT_DATE, SLOT_DATE, tenant_id=TENANT_ID)
        db.commit()

        result = shifts.update_service(service.id, tenant_id=TENANT_ID, capacity_per_slot=10)

        assert result.slot_sync.slots_updated == 0
        stored = db.query(Slot).filter(Slot.shift_id == shift.id).one()
        assert (stored.original_capacity, stored.available_capacity) == (3, 3)

    def test_unknown_service(self, db):
        with pytest.raises(NotFoundException):
            SlotService(db).update_slots_on_service_capacity_change("01ARZ3NDEKTSV4RRFFQ69G5FAV")

    def test_sync_all_repairs_each_tenant_service(self, db, make_slot):
        ours = make_slot()
        other = make_slot(capacity=4)
        theirs = make_slot(tenant_id=OTHER_TENANT_ID)
        db.execute(update(Service).values(capacity_per_slot=6))
        db.commit()

        results = SlotService(db).sync_all_slots_with_service_capacity(tenant_id=TENANT_ID)

        assert len(results) == 2
        assert sum(r.slots_updated for r in results) == 2
        assert _counters(db, ours.id) == (6, 6, 0)
        assert _counters(db, other.id) == (6, 6, 0)
        assert _counters(db, theirs.id) == (5, 5, 0)

    def test_sync_all_skips_service_removed_midway(self, db, slot, monkeypatch):
        sync = SlotService(db)
        real_ids = sync.service_repository.list_ids
        monkeypatch.setattr(
            sync.service_repository,
            "list_ids",
            lambda tenant_id=None: ["01ARZ3NDEKTSV4RRFFQ69G5FAV"] + real_ids(tenant_id),
        )

        results = sync.sync_all_slots_with_service_capacity(tenant_id=TENANT_ID)

        assert [r.service_id for r in results] == [slot.shift.service_id]
