"""Lock payloads built from BookingLock rows, without a database."""

from datetime import datetime, timezone

from bookati.models.booking_lock import BookingLock
from bookati.schemas.booking_lock import LockResponse


def test_naive_expiry_is_reported_as_utc():
    lock = BookingLock(
        id="01ARZ3NDEKTSV4RRFFQ69G5FAV",
        tenant_id="tenant-a",
        slot_id="01ARZ3NDEKTSV4RRFFQ69G5FAW",
        reserved_capacity=3,
        lock_expires_at=datetime(2030, 1, 7, 9, 15),
    )

    response = LockResponse.from_lock(lock)

    assert response.lock_id == lock.id
    assert response.slot_id == lock.slot_id
    assert response.reserved_capacity == 3
    assert response.expires_at == datetime(2030, 1, 7, 9, 15, tzinfo=timezone.utc)
