"""Event publisher - writes domain events to the transactional outbox."""
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from ..models.event_outbox import EventOutbox
from ..repositories.event_outbox_repository import EventOutboxRepository


class Event(Protocol):
    """Protocol for event types."""

    event_type: str

    @property
    def aggregate_id(self) -> str:
        ...

    def to_dict(self) -> Dict[str, Any]:
        ...


class EventPublisher:
    """Publishes domain events to the outbox for asynchronous delivery."""

    def __init__(self, outbox_repository: EventOutboxRepository):
        self.outbox_repo = outbox_repository

    def publish(
        self,
        event: Event,
        *,
        tenant_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> EventOutbox:
        """
        Stage an event in the caller's transaction.

        The row commits or rolls back together with the state change, and the
        dispatcher delivers it only after commit. One fact per aggregate and
        event type, so replays of the same transition collapse onto one row.
        """
        payload = event.to_dict()

        # Convert datetime objects to ISO strings for JSON serialization
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()

        return self.outbox_repo.enqueue(
            event.event_type,
            event.aggregate_id,
            payload,
            idempotency_key=idempotency_key or f"{event.event_type}:{event.aggregate_id}",
            tenant_id=tenant_id or payload.get("tenant_id"),
        )
