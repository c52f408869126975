"""Event payloads written to the outbox."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

from bookati.events.booking_events import BookingCancelled, BookingCreated, PackageExhausted
from bookati.events.publisher import EventPublisher


def _created(**overrides):
    values = dict(
        booking_id="b1",
        tenant_id="tenant-a",
        status="pending",
        service_id="svc",
        slot_id="slot",
        visitor_count=3,
        package_covered_quantity=2,
        paid_quantity=1,
        slot_start_utc=datetime(2030, 1, 7, 9, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return BookingCreated(**values)


def test_booking_fact_keys_on_booking_id():
    event = _created()

    assert event.event_type == "booking.created"
    assert event.aggregate_id == "b1"
    assert event.to_dict()["visitor_count"] == 3


def test_cancelled_fact_carries_reason():
    event = BookingCancelled(
        booking_id="b1",
        tenant_id="t",
        status="cancelled",
        service_id="svc",
        slot_id="slot",
        visitor_count=1,
        package_covered_quantity=0,
        paid_quantity=1,
        cancellation_reason="weather",
    )

    assert event.to_dict()["cancellation_reason"] == "weather"
    assert "event_type" not in event.to_dict()


def test_package_exhausted_keys_on_subscription():
    event = PackageExhausted(
        subscription_id="sub-1", service_id="svc", tenant_id="t", customer_id="c"
    )

    assert event.aggregate_id == "sub-1"


def test_publisher_serialises_datetimes_and_derives_key():
    repo = MagicMock()
    EventPublisher(repo).publish(_created())

    args, kwargs = repo.enqueue.call_args
    assert args[0] == "booking.created"
    assert args[1] == "b1"
    assert args[2]["slot_start_utc"] == "2030-01-07T09:00:00+00:00"
    assert kwargs["idempotency_key"] == "booking.created:b1"
    assert kwargs["tenant_id"] == "tenant-a"


def test_publisher_honours_explicit_key():
    repo = MagicMock()
    EventPublisher(repo).publish(_created(), idempotency_key="custom")

    assert repo.enqueue.call_args.kwargs["idempotency_key"] == "custom"
