"""Slot queries and duplicate-tolerant slot insertion."""

from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import update

from bookati.core.ulid_helper import generate_ulid
from bookati.models.slot import Slot
from bookati.repositories.slot_repository import SlotRepository
from tests.helpers import OTHER_TENANT_ID, SLOT_DATE, TENANT_ID


def _row(slot, start_hour):
    return {
        "id": generate_ulid(),
        "tenant_id": slot.tenant_id,
        "shift_id": slot.shift_id,
        "slot_date": slot.slot_date,
        "start_time": time(start_hour, 0),
        "end_time": time(start_hour + 1, 0),
        "start_time_utc": datetime(2030, 1, 7, start_hour, tzinfo=timezone.utc),
        "end_time_utc": datetime(2030, 1, 7, start_hour + 1, tzinfo=timezone.utc),
        "original_capacity": 4,
        "available_capacity": 4,
        "booked_count": 0,
        "is_available": True,
    }


class TestSlotRepository:
    def test_get_for_tenant_hides_other_tenants_slots(self, db, slot):
        repo = SlotRepository(db)

        assert repo.get_for_tenant(slot.id, TENANT_ID).id == slot.id
        assert repo.get_for_tenant(slot.id, OTHER_TENANT_ID) is None
        assert repo.get_for_tenant(slot.id).id == slot.id

    def test_get_for_update_reloads_counters(self, db, slot):
        repo = SlotRepository(db)
        db.execute(
            update(Slot).where(Slot.id == slot.id).values(available_capacity=1, booked_count=4)
        )

        locked = repo.get_for_update(slot.id)

        assert locked is slot
        assert (locked.available_capacity, locked.booked_count) == (1, 4)

    def test_insert_ignoring_duplicates_counts_only_new_rows(self, db, slot):
        repo = SlotRepository(db)

        # 09:00 already exists for this shift and date
        inserted = repo.insert_ignoring_duplicates([_row(slot, 9), _row(slot, 10), _row(slot, 11)])

        assert inserted == 2
        assert len(repo.list_for_shift(slot.shift_id, SLOT_DATE, SLOT_DATE)) == 3

    def test_insert_ignoring_duplicates_with_no_rows(self, db):
        assert SlotRepository(db).insert_ignoring_duplicates([]) == 0

    def test_list_for_tenant_filters_by_date_range(self, db, make_slot):
        early = make_slot(slot_date=date(2030, 1, 7))
        late = make_slot(slot_date=date(2030, 1, 9))
        make_slot(tenant_id=OTHER_TENANT_ID)
        repo = SlotRepository(db)

        assert [s.id for s in repo.list_for_tenant(TENANT_ID)] == [early.id, late.id]
        assert [s.id for s in repo.list_for_tenant(TENANT_ID, date(2030, 1, 8))] == [late.id]
        assert [s.id for s in repo.list_for_tenant(TENANT_ID, None, date(2030, 1, 8))] == [
            early.id
        ]

    def test_list_ids_scoped_by_tenant(self, db, make_slot):
        ours = make_slot()
        theirs = make_slot(tenant_id=OTHER_TENANT_ID)
        repo = SlotRepository(db)

        assert repo.list_ids(TENANT_ID) == [ours.id]
        assert sorted(repo.list_ids()) == sorted([ours.id, theirs.id])

    def test_slots_following_service_capacity_from_date(self, db, slot):
        repo = SlotRepository(db)
        service_id = slot.shift.service_id

        assert [s.id for s in repo.list_following_service_capacity(service_id, SLOT_DATE)] == [
            slot.id
        ]
        later = SLOT_DATE + timedelta(days=1)
        assert repo.list_following_service_capacity(service_id, later) == []
