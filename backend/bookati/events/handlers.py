"""
Event handlers - deliver outbox events to downstream collaborators.

Ticketing, invoicing and notification code subscribe by registering a
handler for an event type. Handlers run in the Celery dispatcher after the
booking transaction has committed; a failing handler triggers a retry of the
outbox row and never touches booking state.
"""
from collections import defaultdict
from dataclasses import dataclass
import logging
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from ..repositories.event_outbox_repository import EventDeliveryRepository

logger = logging.getLogger(__name__)

EventHandler = Callable[[Dict[str, Any], Session], None]

_HANDLERS: Dict[str, List[EventHandler]] = defaultdict(list)


@dataclass
class DispatchResult:
    event_type: str
    idempotency_key: str
    handlers_run: int
    duplicate: bool


def register_handler(event_type: str) -> Callable[[EventHandler], EventHandler]:
    """Decorator subscribing a handler to an event type."""

    def decorator(handler: EventHandler) -> EventHandler:
        if handler not in _HANDLERS[event_type]:
            _HANDLERS[event_type].append(handler)
        return handler

    return decorator


def unregister_handler(event_type: str, handler: EventHandler) -> None:
    if handler in _HANDLERS.get(event_type, []):
        _HANDLERS[event_type].remove(handler)


def get_handlers(event_type: str) -> List[EventHandler]:
    return list(_HANDLERS.get(event_type, []))


def dispatch_event(
    event_type: str,
    payload: Dict[str, Any],
    idempotency_key: str,
    db: Session,
) -> DispatchResult:
    """
    Run every handler for an event exactly once per idempotency key.

    The delivery record is written in ``db`` after the handlers succeed, so a
    handler failure leaves no record and the event is retried later.
    """
    if not idempotency_key:
        raise ValueError("idempotency_key is required for event dispatch")

    deliveries = EventDeliveryRepository(db)
    if deliveries.get_by_key(idempotency_key) is not None:
        deliveries.record_delivery(event_type, idempotency_key, payload)
        logger.info("Event %s already delivered; skipping handlers", idempotency_key)
        return DispatchResult(event_type, idempotency_key, 0, True)

    handlers = get_handlers(event_type)
    for handler in handlers:
        handler(payload, db)

    deliveries.record_delivery(event_type, idempotency_key, payload)
    return DispatchResult(event_type, idempotency_key, len(handlers), False)


@register_handler("booking.created")
@register_handler("booking.confirmed")
@register_handler("booking.cancelled")
@register_handler("booking.completed")
def log_booking_fact(payload: Dict[str, Any], db: Session) -> None:
    """Record booking facts for downstream consumers that poll the delivery log."""
    logger.info(
        "Booking %s is now %s (slot=%s visitors=%s)",
        payload.get("booking_id"),
        payload.get("status"),
        payload.get("slot_id"),
        payload.get("visitor_count"),
    )


@register_handler("package.exhausted")
def log_package_exhausted(payload: Dict[str, Any], db: Session) -> None:
    logger.info(
        "Package subscription %s exhausted for service %s (customer=%s)",
        payload.get("subscription_id"),
        payload.get("service_id"),
        payload.get("customer_id"),
    )
