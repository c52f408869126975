# backend/bookati/repositories/package_repository.py
"""
Package subscription and quota ledger repository.
"""

from typing import Dict, List, Optional

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session
import ulid

from ..models.package import (
    PackageExhaustionNotification,
    PackageSubscription,
    PackageSubscriptionUsage,
    SubscriptionStatus,
)
from .base_repository import BaseRepository


class PackageRepository(BaseRepository[PackageSubscription]):
    """Data access for subscriptions, their ledger rows and exhaustion markers."""

    def __init__(self, db: Session):
        super().__init__(db, PackageSubscription)

    # ------------------------------------------------------------- subscriptions
    def get_subscription(
        self, subscription_id: str, tenant_id: Optional[str] = None
    ) -> Optional[PackageSubscription]:
        query = self.db.query(PackageSubscription).filter(PackageSubscription.id == subscription_id)
        if tenant_id is not None:
            query = query.filter(PackageSubscription.tenant_id == tenant_id)
        return query.first()

    def create_subscription(
        self,
        *,
        tenant_id: str,
        customer_id: str,
        package_id: str,
        entitlements: Dict[str, int],
    ) -> PackageSubscription:
        subscription = self.create(
            tenant_id=tenant_id,
            customer_id=customer_id,
            package_id=package_id,
            status=SubscriptionStatus.ACTIVE.value,
        )
        for service_id, quantity in entitlements.items():
            self.db.add(
                PackageSubscriptionUsage(
                    subscription_id=subscription.id,
                    service_id=service_id,
                    original_quantity=quantity,
                    remaining_quantity=quantity,
                    used_quantity=0,
                )
            )
        self.db.flush()
        return subscription

    # ------------------------------------------------------------------- ledger
    def get_usage(
        self, subscription_id: str, service_id: str, *, for_update: bool = False
    ) -> Optional[PackageSubscriptionUsage]:
        query = self.db.query(PackageSubscriptionUsage).filter(
            PackageSubscriptionUsage.subscription_id == subscription_id,
            PackageSubscriptionUsage.service_id == service_id,
        )
        if for_update:
            query = self._locked(query).populate_existing()
        return query.first()

    def list_usage(self, subscription_id: str) -> List[PackageSubscriptionUsage]:
        return (
            self.db.query(PackageSubscriptionUsage)
            .filter(PackageSubscriptionUsage.subscription_id == subscription_id)
            .order_by(PackageSubscriptionUsage.service_id)
            .all()
        )

    def list_active_usage_for_customer(
        self, customer_id: str, service_id: str, tenant_id: Optional[str] = None
    ) -> List[PackageSubscriptionUsage]:
        """Ledger rows for a service across the customer's active subscriptions."""
        query = (
            self.db.query(PackageSubscriptionUsage)
            .join(
                PackageSubscription,
                PackageSubscription.id == PackageSubscriptionUsage.subscription_id,
            )
            .filter(
                PackageSubscription.customer_id == customer_id,
                PackageSubscription.status == SubscriptionStatus.ACTIVE.value,
                PackageSubscriptionUsage.service_id == service_id,
            )
        )
        if tenant_id is not None:
            query = query.filter(PackageSubscription.tenant_id == tenant_id)
        return query.order_by(PackageSubscription.created_at, PackageSubscription.id).all()

    # ------------------------------------------------------ exhaustion markers
    def record_exhaustion(self, subscription_id: str, service_id: str) -> bool:
        """
        Insert the one-time exhaustion marker for a ledger row.

        Returns True only for the call that created it.
        """
        values = {
            "id": str(ulid.ULID()),
            "subscription_id": subscription_id,
            "service_id": service_id,
        }
        if self.dialect_name == "postgresql":
            stmt = (
                pg_insert(PackageExhaustionNotification)
                .values(**values)
                .on_conflict_do_nothing(
                    constraint="uq_package_exhaustion_subscription_service"
                )
            )
        else:
            if self.has_exhaustion_marker(subscription_id, service_id):
                return False
            stmt = insert(PackageExhaustionNotification).values(**values)
            if self.dialect_name == "sqlite":
                stmt = stmt.prefix_with("OR IGNORE")
        result = self.db.execute(stmt)
        return bool(result.rowcount)

    def has_exhaustion_marker(self, subscription_id: str, service_id: str) -> bool:
        return (
            self.db.query(PackageExhaustionNotification.id)
            .filter(
                PackageExhaustionNotification.subscription_id == subscription_id,
                PackageExhaustionNotification.service_id == service_id,
            )
            .first()
            is not None
        )
