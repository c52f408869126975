"""Schemas for booking lock endpoints."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from ..core.timezone_utils import ensure_utc
from ..models.booking_lock import BookingLock
from ._strict_base import StrictModel, StrictRequestModel


class LockCreateRequest(StrictRequestModel):
    slot_id: str = Field(..., min_length=1, max_length=26)
    visitor_count: int = Field(..., ge=1, description="Capacity to reserve")
    ttl_seconds: Optional[int] = Field(
        None, ge=1, description="Lock lifetime; server default when omitted"
    )
    session_id: Optional[str] = Field(
        None, max_length=255, description="Requester session that must present the lock"
    )


class LockResponse(StrictModel):
    lock_id: str
    slot_id: str
    reserved_capacity: int
    expires_at: datetime

    @classmethod
    def from_lock(cls, lock: BookingLock) -> "LockResponse":
        return cls(
            lock_id=lock.id,
            slot_id=lock.slot_id,
            reserved_capacity=lock.reserved_capacity,
            expires_at=ensure_utc(lock.lock_expires_at),
        )


class LockValidationResponse(StrictModel):
    lock_id: str
    valid: bool


class ActiveLockTotalsRequest(StrictRequestModel):
    slot_ids: List[str] = Field(..., min_length=1, max_length=500)


class ActiveLockTotalsResponse(StrictModel):
    totals: Dict[str, int]


class SweepResponse(StrictModel):
    removed: int
