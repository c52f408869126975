"""Concurrent callers racing on the same slot, lock or booking."""

import threading

from bookati.core.exceptions import CapacityExceededException, LockExpiredOrInvalidException
from bookati.models.booking import Booking
from bookati.models.booking_lock import BookingLock
from bookati.models.package import PackageSubscriptionUsage
from bookati.models.slot import Slot
from bookati.services.booking_lock_service import BookingLockService
from bookati.services.booking_service import BookingService
from tests.helpers import TENANT_ID


def _race(target, racers=2):
    """Start ``target`` in parallel threads at the same moment; collect what each returned."""
    barrier = threading.Barrier(racers)
    outcomes = []
    outcomes_lock = threading.Lock()

    def racer():
        result = "error"
        try:
            barrier.wait(timeout=5)
            result = target()
        finally:
            with outcomes_lock:
                outcomes.append(result)

    threads = [threading.Thread(target=racer) for _ in range(racers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


class TestConcurrentLockAcquisition:
    def test_only_one_of_two_racers_gets_the_last_unit(self, db, session_factory, make_slot):
        slot = make_slot(capacity=1)
        slot_id = slot.id
        db.commit()

        def acquire():
            session = session_factory()
            try:
                BookingLockService(session).acquire_lock(slot_id, 1, tenant_id=TENANT_ID)
                return "granted"
            except CapacityExceededException:
                return "denied"
            finally:
                session.close()

        outcomes = _race(acquire)

        assert sorted(outcomes) == ["denied", "granted"]
        db.expire_all()
        assert db.query(BookingLock).filter(BookingLock.slot_id == slot_id).count() == 1


class TestConcurrentBooking:
    def test_one_lock_converts_into_one_booking(self, db, session_factory, slot):
        slot_id = slot.id
        lock_id = BookingLockService(db).acquire_lock(slot_id, 2, tenant_id=TENANT_ID).id
        db.commit()

        def book():
            session = session_factory()
            try:
                BookingService(session).create_booking(lock_id, slot_id, 2, tenant_id=TENANT_ID)
                return "booked"
            except LockExpiredOrInvalidException:
                return "rejected"
            finally:
                session.close()

        outcomes = _race(book)

        assert sorted(outcomes) == ["booked", "rejected"]
        db.expire_all()
        assert db.query(Booking).filter(Booking.slot_id == slot_id).count() == 1
        stored = db.get(Slot, slot_id)
        assert (stored.available_capacity, stored.booked_count) == (3, 2)

    def test_parallel_cancels_restore_capacity_and_quota_once(
        self, db, session_factory, slot, make_subscription
    ):
        slot_id = slot.id
        service_id = slot.shift.service_id
        subscription = make_subscription(service_id, 4)
        lock = BookingLockService(db).acquire_lock(slot_id, 3, tenant_id=TENANT_ID)
        booking_id = (
            BookingService(db)
            .create_booking(
                lock.id, slot_id, 3, tenant_id=TENANT_ID, package_subscription_id=subscription.id
            )
            .id
        )
        db.commit()

        def cancel():
            session = session_factory()
            try:
                return (
                    BookingService(session)
                    .transition_status(booking_id, "cancelled", tenant_id=TENANT_ID)
                    .status
                )
            finally:
                session.close()

        outcomes = _race(cancel)

        assert outcomes == ["cancelled", "cancelled"]
        db.expire_all()
        stored = db.get(Slot, slot_id)
        assert (stored.available_capacity, stored.booked_count) == (5, 0)
        usage = (
            db.query(PackageSubscriptionUsage)
            .filter_by(subscription_id=subscription.id, service_id=service_id)
            .one()
        )
        assert (usage.remaining_quantity, usage.used_quantity) == (4, 0)
