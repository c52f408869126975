"""Subscriptions, ledger rows and the one-time exhaustion marker."""

from bookati.models.package import SubscriptionStatus
from bookati.repositories.package_repository import PackageRepository
from tests.helpers import OTHER_TENANT_ID, TENANT_ID


class TestPackageRepository:
    def test_create_subscription_writes_one_ledger_row_per_service(self, db, make_slot):
        first = make_slot().shift.service
        second = make_slot().shift.service
        repo = PackageRepository(db)

        subscription = repo.create_subscription(
            tenant_id=TENANT_ID,
            customer_id="cust-1",
            package_id="pkg",
            entitlements={first.id: 5, second.id: 0},
        )

        rows = {row.service_id: row for row in repo.list_usage(subscription.id)}
        assert rows[first.id].original_quantity == 5
        assert rows[first.id].remaining_quantity == 5
        assert rows[first.id].used_quantity == 0
        assert rows[second.id].remaining_quantity == 0
        assert subscription.status == SubscriptionStatus.ACTIVE.value

    def test_get_subscription_scoped_by_tenant(self, db, slot, make_subscription):
        subscription = make_subscription(slot.shift.service_id, 3)
        repo = PackageRepository(db)

        assert repo.get_subscription(subscription.id, TENANT_ID) is not None
        assert repo.get_subscription(subscription.id, OTHER_TENANT_ID) is None

    def test_active_usage_for_customer_skips_inactive_subscriptions(
        self, db, slot, make_subscription
    ):
        service_id = slot.shift.service_id
        active = make_subscription(service_id, 3)
        cancelled = make_subscription(service_id, 7)
        make_subscription(service_id, 9, customer_id="someone-else")
        cancelled.status = SubscriptionStatus.CANCELLED.value
        db.flush()

        rows = PackageRepository(db).list_active_usage_for_customer("cust-1", service_id)

        assert [row.subscription_id for row in rows] == [active.id]

    def test_record_exhaustion_only_once(self, db, slot, make_subscription):
        service_id = slot.shift.service_id
        subscription = make_subscription(service_id, 1)
        repo = PackageRepository(db)

        assert repo.has_exhaustion_marker(subscription.id, service_id) is False
        assert repo.record_exhaustion(subscription.id, service_id) is True
        assert repo.record_exhaustion(subscription.id, service_id) is False
        assert repo.has_exhaustion_marker(subscription.id, service_id) is True
