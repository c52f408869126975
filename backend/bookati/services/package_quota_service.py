# backend/bookati/services/package_quota_service.py
"""
Package Quota Ledger service.

One ledger row per (subscription, service) with
``original_quantity = remaining_quantity + used_quantity`` and
``0 <= remaining_quantity <= original_quantity``.

``reserve`` and ``restore`` run inside the booking transaction that calls
them and never commit on their own. They lock the ledger row, and callers
must already hold the slot row so that every path takes slot before ledger.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    CapacityInvariantViolation,
    InsufficientQuotaException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import now_utc
from ..events.booking_events import PackageExhausted
from ..events.publisher import EventPublisher
from ..models.package import PackageSubscription, PackageSubscriptionUsage
from ..repositories.event_outbox_repository import EventOutboxRepository
from ..repositories.package_repository import PackageRepository
from ..repositories.shift_repository import ServiceRepository
from .base import BaseService


@dataclass
class SubscriptionQuota:
    subscription_id: str
    original_quantity: int
    remaining_quantity: int
    used_quantity: int
    is_exhausted: bool


@dataclass
class CustomerServiceCapacity:
    """Remaining package quota a customer holds for one service."""

    customer_id: str
    service_id: str
    total_remaining: int
    subscriptions: List[SubscriptionQuota] = field(default_factory=list)

    @property
    def is_exhausted(self) -> bool:
        return self.total_remaining <= 0


class PackageQuotaService(BaseService):
    """Subscription activation and the quota ledger."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.package_repository = PackageRepository(db)
        self.service_repository = ServiceRepository(db)
        self.event_publisher = EventPublisher(EventOutboxRepository(db))

    # ---------------------------------------------------------- subscriptions
    @BaseService.measure_operation("activate_subscription")
    def activate_subscription(
        self,
        *,
        tenant_id: str,
        customer_id: str,
        package_id: str,
        entitlements: Dict[str, int],
    ) -> PackageSubscription:
        """Create a subscription with one ledger row per entitled service."""
        if not entitlements:
            raise ValidationException("entitlements must name at least one service")
        for service_id, quantity in entitlements.items():
            if quantity < 0:
                raise ValidationException(
                    f"Entitlement for service {service_id} must be >= 0",
                    details={"service_id": service_id, "quantity": quantity},
                )

        with self.transaction():
            for service_id in entitlements:
                if self.service_repository.get_for_tenant(service_id, tenant_id) is None:
                    raise NotFoundException(
                        f"Service {service_id} not found", code="SERVICE_NOT_FOUND"
                    )
            subscription = self.package_repository.create_subscription(
                tenant_id=tenant_id,
                customer_id=customer_id,
                package_id=package_id,
                entitlements=entitlements,
            )

        self.log_operation(
            "activate_subscription",
            subscription_id=subscription.id,
            customer_id=customer_id,
            services=len(entitlements),
        )
        return subscription

    def get_subscription(
        self, subscription_id: str, tenant_id: Optional[str] = None
    ) -> PackageSubscription:
        subscription = self.package_repository.get_subscription(subscription_id, tenant_id)
        if subscription is None:
            raise NotFoundException(
                f"Package subscription {subscription_id} not found",
                code="SUBSCRIPTION_NOT_FOUND",
            )
        return subscription

    def get_usage(
        self, subscription_id: str, tenant_id: Optional[str] = None
    ) -> List[PackageSubscriptionUsage]:
        subscription = self.get_subscription(subscription_id, tenant_id)
        return self.package_repository.list_usage(subscription.id)

    def resolve_customer_service_capacity(
        self, customer_id: str, service_id: str, tenant_id: Optional[str] = None
    ) -> CustomerServiceCapacity:
        """Sum remaining quota for a service over the customer's active subscriptions."""
        rows = self.package_repository.list_active_usage_for_customer(
            customer_id, service_id, tenant_id
        )
        quotas = [
            SubscriptionQuota(
                subscription_id=row.subscription_id,
                original_quantity=row.original_quantity,
                remaining_quantity=row.remaining_quantity,
                used_quantity=row.used_quantity,
                is_exhausted=row.remaining_quantity <= 0,
            )
            for row in rows
        ]
        return CustomerServiceCapacity(
            customer_id=customer_id,
            service_id=service_id,
            total_remaining=sum(q.remaining_quantity for q in quotas),
            subscriptions=quotas,
        )

    # ----------------------------------------------------------------- ledger
    def lock_usage(self, subscription_id: str, service_id: str) -> PackageSubscriptionUsage:
        usage = self.package_repository.get_usage(subscription_id, service_id, for_update=True)
        if usage is None:
            raise NotFoundException(
                f"Subscription {subscription_id} has no quota for service {service_id}",
                code="QUOTA_ENTRY_NOT_FOUND",
                details={"subscription_id": subscription_id, "service_id": service_id},
            )
        return usage

    def reserve(
        self,
        subscription_id: str,
        service_id: str,
        quantity: int,
        *,
        booking_id: Optional[str] = None,
    ) -> PackageSubscriptionUsage:
        """
        Conditionally decrement remaining quota by ``quantity``.

        Raises InsufficientQuotaException when less than ``quantity`` remains.
        The first reservation that takes a row to zero records the one-time
        exhaustion marker and stages a ``package.exhausted`` event.
        """
        if quantity < 0:
            raise ValidationException("quantity must be >= 0")
        usage = self.lock_usage(subscription_id, service_id)
        if quantity == 0:
            return usage
        if usage.remaining_quantity < quantity:
            raise InsufficientQuotaException(
                subscription_id, service_id, quantity, usage.remaining_quantity
            )

        usage.remaining_quantity -= quantity
        usage.used_quantity += quantity
        self.db.flush()

        if usage.remaining_quantity == 0:
            self._record_exhaustion(subscription_id, service_id, booking_id)
        return usage

    def restore(
        self, subscription_id: str, service_id: str, quantity: int
    ) -> PackageSubscriptionUsage:
        """
        Give ``quantity`` back to the ledger row.

        Restoring past ``original_quantity`` means more is being returned than
        was ever reserved, which raises CapacityInvariantViolation.
        """
        if quantity < 0:
            raise ValidationException("quantity must be >= 0")
        usage = self.lock_usage(subscription_id, service_id)
        if quantity == 0:
            return usage
        if (
            usage.remaining_quantity + quantity > usage.original_quantity
            or usage.used_quantity < quantity
        ):
            details = {
                "subscription_id": subscription_id,
                "service_id": service_id,
                "original_quantity": usage.original_quantity,
                "remaining_quantity": usage.remaining_quantity,
                "used_quantity": usage.used_quantity,
                "restore_quantity": quantity,
            }
            self.logger.error("Quota restore would exceed entitlement: %s", details)
            raise CapacityInvariantViolation(
                "Quota restore would exceed the original entitlement", details
            )

        usage.remaining_quantity += quantity
        usage.used_quantity -= quantity
        self.db.flush()
        return usage

    def _record_exhaustion(
        self, subscription_id: str, service_id: str, booking_id: Optional[str]
    ) -> None:
        if not self.package_repository.record_exhaustion(subscription_id, service_id):
            return
        subscription = self.package_repository.get_subscription(subscription_id)
        if subscription is None:
            return
        self.event_publisher.publish(
            PackageExhausted(
                subscription_id=subscription_id,
                service_id=service_id,
                tenant_id=subscription.tenant_id,
                customer_id=subscription.customer_id,
                booking_id=booking_id,
                occurred_at=now_utc(),
            ),
            idempotency_key=f"package.exhausted:{subscription_id}:{service_id}",
        )
        self.logger.info(
            "Package subscription %s exhausted for service %s", subscription_id, service_id
        )
