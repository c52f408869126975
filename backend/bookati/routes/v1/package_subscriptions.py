# backend/bookati/routes/v1/package_subscriptions.py
"""
Package subscription routes - API v1

Endpoints:
    POST / - Activate a subscription with per-service entitlements
    GET /customers/{customer_id}/services/{service_id} - Remaining quota across
        the customer's active subscriptions
    GET /{subscription_id}/usage - Ledger rows of one subscription
"""

import asyncio
import logging
from typing import List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from ...api.dependencies import get_package_quota_service, get_tenant_id
from ...core.exceptions import DomainException
from ...models.package import PackageSubscription, PackageSubscriptionUsage
from ...schemas.package import (
    CustomerCapacityResponse,
    SubscriptionCreateRequest,
    SubscriptionQuotaResponse,
    SubscriptionResponse,
    UsageResponse,
)
from ...services.package_quota_service import PackageQuotaService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["package-subscriptions-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _usage_response(row: PackageSubscriptionUsage) -> UsageResponse:
    return UsageResponse(
        service_id=row.service_id,
        original_quantity=row.original_quantity,
        remaining_quantity=row.remaining_quantity,
        used_quantity=row.used_quantity,
        is_exhausted=row.remaining_quantity <= 0,
    )


def _subscription_response(
    subscription: PackageSubscription, usage: List[PackageSubscriptionUsage]
) -> SubscriptionResponse:
    return SubscriptionResponse(
        subscription_id=subscription.id,
        tenant_id=subscription.tenant_id,
        customer_id=subscription.customer_id,
        package_id=subscription.package_id,
        status=subscription.status,
        usage=[_usage_response(row) for row in usage],
    )


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def activate_subscription(
    payload: SubscriptionCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    quota_service: PackageQuotaService = Depends(get_package_quota_service),
) -> SubscriptionResponse:
    try:
        subscription = await asyncio.to_thread(
            quota_service.activate_subscription,
            tenant_id=tenant_id,
            customer_id=payload.customer_id,
            package_id=payload.package_id,
            entitlements=payload.entitlements,
        )
        usage = await asyncio.to_thread(quota_service.get_usage, subscription.id, tenant_id)
        return _subscription_response(subscription, usage)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/customers/{customer_id}/services/{service_id}",
    response_model=CustomerCapacityResponse,
)
async def get_customer_service_capacity(
    customer_id: str,
    service_id: str,
    tenant_id: str = Depends(get_tenant_id),
    quota_service: PackageQuotaService = Depends(get_package_quota_service),
) -> CustomerCapacityResponse:
    try:
        capacity = await asyncio.to_thread(
            quota_service.resolve_customer_service_capacity, customer_id, service_id, tenant_id
        )
        return CustomerCapacityResponse(
            customer_id=capacity.customer_id,
            service_id=capacity.service_id,
            total_remaining=capacity.total_remaining,
            is_exhausted=capacity.is_exhausted,
            subscriptions=[
                SubscriptionQuotaResponse.model_validate(quota) for quota in capacity.subscriptions
            ],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{subscription_id}/usage",
    response_model=SubscriptionResponse,
    responses={404: {"description": "Subscription not found"}},
)
async def get_subscription_usage(
    subscription_id: str,
    tenant_id: str = Depends(get_tenant_id),
    quota_service: PackageQuotaService = Depends(get_package_quota_service),
) -> SubscriptionResponse:
    try:
        subscription = await asyncio.to_thread(
            quota_service.get_subscription, subscription_id, tenant_id
        )
        usage = await asyncio.to_thread(quota_service.get_usage, subscription_id, tenant_id)
        return _subscription_response(subscription, usage)
    except DomainException as e:
        handle_domain_exception(e)
