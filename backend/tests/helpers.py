"""Constants and small builders shared by the test modules."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from bookati.models.booking_lock import BookingLock

TENANT_ID = "tenant-a"
OTHER_TENANT_ID = "tenant-b"
# A Monday
SLOT_DATE = date(2030, 1, 7)
ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]


def expire_lock(db: Session, lock_id: str, seconds_ago: int = 5) -> None:
    """Move a lock's expiry into the past and commit."""
    lock: Optional[BookingLock] = db.get(BookingLock, lock_id)
    assert lock is not None
    lock.lock_expires_at = datetime.now(timezone.utc) - timedelta(seconds=seconds_ago)
    db.commit()
