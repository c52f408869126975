"""Schemas for services, shifts and slots."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel


class ServiceCreateRequest(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    capacity_per_slot: int = Field(..., ge=0)
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    duration_minutes: Optional[int] = Field(None, ge=1, le=24 * 60)


class ServiceResponse(StrictModel):
    id: str
    tenant_id: str
    name: str
    capacity_per_slot: int
    price: Decimal
    duration_minutes: Optional[int] = None
    is_active: bool


class ServiceUpdateRequest(StrictRequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    capacity_per_slot: Optional[int] = Field(
        None, ge=0, description="New capacity; upcoming slots are rebased on it"
    )
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    duration_minutes: Optional[int] = Field(None, ge=1, le=24 * 60)
    is_active: Optional[bool] = None


class ServiceCapacitySyncResponse(StrictModel):
    service_id: str
    service_name: str
    capacity_per_slot: int
    from_date: date
    slots_updated: int
    oversold_slot_ids: List[str]


class ServiceUpdateResponse(StrictModel):
    service: ServiceResponse
    slot_sync: Optional[ServiceCapacitySyncResponse] = None


class SyncServiceCapacityRequest(StrictRequestModel):
    from_date: Optional[date] = Field(
        None, description="First slot date to rebase; today when omitted"
    )


class SyncServiceCapacityResponse(StrictModel):
    services: List[ServiceCapacitySyncResponse]
    slots_updated: int


class ShiftCreateRequest(StrictRequestModel):
    service_id: str = Field(..., min_length=1, max_length=26)
    days_of_week: List[int] = Field(..., min_length=1, description="0 = Sunday ... 6 = Saturday")
    start_time: time
    end_time: time
    timezone: str = Field("UTC", max_length=64)
    slot_duration_minutes: Optional[int] = Field(None, ge=1, le=24 * 60)
    capacity_per_slot: Optional[int] = Field(None, ge=0)

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, value: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("days_of_week values must be between 0 and 6")
        return value


class ShiftResponse(StrictModel):
    id: str
    tenant_id: str
    service_id: str
    days_of_week: List[int]
    start_time: time
    end_time: time
    timezone: str
    slot_duration_minutes: Optional[int] = None
    capacity_per_slot: Optional[int] = None


class SlotGenerationRequest(StrictRequestModel):
    start_date: date
    end_date: date


class SlotGenerationResponse(StrictModel):
    shift_id: str
    start_date: date
    end_date: date
    slots_created: int
    slots_skipped: int


class SlotResponse(StrictModel):
    id: str
    tenant_id: str
    shift_id: str
    slot_date: date
    start_time: time
    end_time: time
    start_time_utc: datetime
    end_time_utc: datetime
    original_capacity: int
    available_capacity: int
    booked_count: int
    is_available: bool


class SlotAvailabilityResponse(StrictModel):
    slot_id: str
    original_capacity: int
    available_capacity: int
    booked_count: int
    active_lock_capacity: int
    claimable_capacity: int
    is_available: bool


class SlotAvailabilityUpdate(StrictRequestModel):
    is_available: bool
