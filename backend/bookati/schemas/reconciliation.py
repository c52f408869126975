"""Schemas for the capacity reconciliation endpoint."""

from datetime import date, time
from typing import List, Optional

from pydantic import Field, model_validator

from ._strict_base import StrictModel, StrictRequestModel


class RecalculateCapacityRequest(StrictRequestModel):
    slot_id: Optional[str] = Field(None, max_length=26)
    all: bool = Field(False, description="Recalculate every slot visible to the caller")

    @model_validator(mode="after")
    def _exactly_one_target(self) -> "RecalculateCapacityRequest":
        if bool(self.slot_id) == bool(self.all):
            raise ValueError("Provide either slot_id or all=true")
        return self


class CapacityCorrectionResponse(StrictModel):
    slot_id: str
    slot_date: date
    start_time: time
    original_capacity: int
    old_available_capacity: int
    new_available_capacity: int
    old_booked_count: int
    new_booked_count: int
    active_booking_count: int


class RecalculateCapacityResponse(StrictModel):
    slots_checked: int
    slots_updated: int
    slots_skipped: int = 0
    corrections: List[CapacityCorrectionResponse]
