"""Periodic capacity tasks and the beat schedule."""

from datetime import timedelta
from unittest.mock import patch

from celery.schedules import crontab
import pytest
from sqlalchemy import update

from bookati.models.booking_lock import BookingLock
from bookati.models.slot import Slot
from bookati.services.booking_lock_service import BookingLockService
from bookati.tasks import capacity_maintenance
from bookati.tasks.beat_schedule import get_beat_schedule
from tests.helpers import TENANT_ID, expire_lock


@pytest.fixture
def task_sessions(db, session_factory):
    db.commit()
    with patch.object(capacity_maintenance, "SessionLocal", session_factory):
        yield


class TestSweepTask:
    def test_removes_expired_locks(self, db, slot, session_factory):
        stale = BookingLockService(db).acquire_lock(slot.id, 1, tenant_id=TENANT_ID)
        BookingLockService(db).acquire_lock(slot.id, 1, tenant_id=TENANT_ID)
        expire_lock(db, stale.id)

        with patch.object(capacity_maintenance, "SessionLocal", session_factory):
            removed = capacity_maintenance.sweep_expired_locks()

        assert removed == 1
        db.expire_all()
        assert db.query(BookingLock).count() == 1


class TestReconcileTasks:
    def test_reconcile_all_returns_serialisable_report(self, db, slot, session_factory):
        db.execute(
            update(Slot).where(Slot.id == slot.id).values(available_capacity=0, booked_count=5)
        )
        db.commit()

        with patch.object(capacity_maintenance, "SessionLocal", session_factory):
            result = capacity_maintenance.reconcile_all_slots()

        assert result["slots_checked"] == 1
        assert result["slots_updated"] == 1
        assert result["slots_skipped"] == 0
        correction = result["corrections"][0]
        assert correction["slot_date"] == slot.slot_date.isoformat()
        assert correction["new_booked_count"] == 0

    def test_reconcile_single_slot(self, slot, task_sessions):
        assert capacity_maintenance.reconcile_slot(slot.id) == {
            "slot_id": slot.id,
            "slots_updated": 0,
        }


class TestBeatSchedule:
    def test_production_schedule(self):
        schedule = get_beat_schedule("production")

        assert schedule["sweep-expired-booking-locks"]["task"] == "capacity.sweep_expired_locks"
        assert isinstance(schedule["nightly-capacity-reconciliation"]["schedule"], crontab)
        assert schedule["dispatch-outbox-events"]["task"] == "outbox.dispatch_pending"

    def test_development_dispatches_faster(self):
        schedule = get_beat_schedule("development")

        assert schedule["dispatch-outbox-events"]["schedule"] == timedelta(seconds=10)
        assert "sweep-expired-booking-locks" in schedule
