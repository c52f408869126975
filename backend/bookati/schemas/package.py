"""Schemas for package subscriptions and their quota ledger."""

from typing import Dict, List

from pydantic import Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel


class SubscriptionCreateRequest(StrictRequestModel):
    customer_id: str = Field(..., min_length=1, max_length=64)
    package_id: str = Field(..., min_length=1, max_length=64)
    entitlements: Dict[str, int] = Field(
        ..., min_length=1, description="Quantity granted per service id"
    )

    @field_validator("entitlements")
    @classmethod
    def _non_negative(cls, value: Dict[str, int]) -> Dict[str, int]:
        if any(quantity < 0 for quantity in value.values()):
            raise ValueError("entitlement quantities must be >= 0")
        return value


class UsageResponse(StrictModel):
    service_id: str
    original_quantity: int
    remaining_quantity: int
    used_quantity: int
    is_exhausted: bool


class SubscriptionResponse(StrictModel):
    subscription_id: str
    tenant_id: str
    customer_id: str
    package_id: str
    status: str
    usage: List[UsageResponse]


class SubscriptionQuotaResponse(StrictModel):
    subscription_id: str
    original_quantity: int
    remaining_quantity: int
    used_quantity: int
    is_exhausted: bool


class CustomerCapacityResponse(StrictModel):
    customer_id: str
    service_id: str
    total_remaining: int
    is_exhausted: bool
    subscriptions: List[SubscriptionQuotaResponse]
