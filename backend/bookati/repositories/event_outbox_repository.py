# backend/bookati/repositories/event_outbox_repository.py
"""
Repository for the booking event outbox.

Implements transactional enqueue, pending fetch with locking, and the status
updates the Celery dispatcher needs.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Optional, cast

from sqlalchemy import Select, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session
import ulid

from ..database import get_dialect_name
from ..models.event_outbox import EventDelivery, EventOutbox, EventOutboxStatus

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    """Return timezone-aware utcnow suitable for DB comparisons."""
    return datetime.now(timezone.utc)


class EventOutboxRepository:
    """Data access helpers for event outbox rows."""

    def __init__(self, db: Session):
        self.db = db
        self._dialect = get_dialect_name(db, default="postgresql").lower()

    # ------------------------------------------------------------------ enqueue
    def enqueue(
        self,
        event_type: str,
        aggregate_id: str,
        payload: Optional[dict[str, Any]] = None,
        *,
        idempotency_key: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> EventOutbox:
        """
        Insert an outbox row unless one already exists for the idempotency key.

        Returns the persisted row (existing or newly created). Never commits;
        the row becomes visible together with the state change it describes.
        """
        now = _now_utc()
        key = idempotency_key or f"{event_type}:{aggregate_id}"
        event_id = str(ulid.ULID())
        values = {
            "id": event_id,
            "tenant_id": tenant_id,
            "event_type": event_type,
            "aggregate_id": aggregate_id,
            "payload": payload or {},
            "idempotency_key": key,
            "status": EventOutboxStatus.PENDING.value,
            "attempt_count": 0,
            "next_attempt_at": now,
        }

        if self._dialect == "postgresql":
            stmt = (
                pg_insert(EventOutbox)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["idempotency_key"])
            )
        else:
            stmt = insert(EventOutbox).values(**values)
            if self._dialect == "sqlite":
                stmt = stmt.prefix_with("OR IGNORE")
        result = self.db.execute(stmt)
        inserted = bool(getattr(result, "rowcount", 0))

        if inserted:
            self.db.flush()
            row = cast(Optional[EventOutbox], self.db.get(EventOutbox, event_id))
            if row is None:
                raise RuntimeError("Inserted outbox row could not be reloaded")
            return row

        existing = self.get_by_key(key)
        if existing is None:
            raise RuntimeError("Outbox row not found after enqueue conflict")
        logger.debug("Outbox event %s already enqueued", key)
        return existing

    # ---------------------------------------------------------------- fetchers
    def fetch_pending(self, limit: int = 200) -> list[EventOutbox]:
        """Return pending events eligible for delivery ordered by attempt time."""
        now = _now_utc()
        stmt: Select[Any] = (
            select(EventOutbox)
            .where(EventOutbox.status == EventOutboxStatus.PENDING.value)
            .where(EventOutbox.next_attempt_at <= now)
            .order_by(EventOutbox.next_attempt_at.asc(), EventOutbox.id.asc())
            .limit(limit)
        )
        if self._dialect == "postgresql":
            stmt = stmt.with_for_update(skip_locked=True)
        return cast(list[EventOutbox], self.db.execute(stmt).scalars().all())

    def get_by_id(self, event_id: str) -> Optional[EventOutbox]:
        return cast(Optional[EventOutbox], self.db.get(EventOutbox, event_id))

    def get_by_key(self, idempotency_key: str) -> Optional[EventOutbox]:
        result = self.db.execute(
            select(EventOutbox).where(EventOutbox.idempotency_key == idempotency_key)
        )
        return cast(Optional[EventOutbox], result.scalar_one_or_none())

    def list_for_aggregate(self, aggregate_id: str) -> list[EventOutbox]:
        result = self.db.execute(
            select(EventOutbox)
            .where(EventOutbox.aggregate_id == aggregate_id)
            .order_by(EventOutbox.created_at.asc(), EventOutbox.id.asc())
        )
        return cast(list[EventOutbox], result.scalars().all())

    # ------------------------------------------------------------- state updates
    def mark_sent(self, event_id: str, attempt_count: int) -> None:
        now = _now_utc()
        self.db.execute(
            update(EventOutbox)
            .where(EventOutbox.id == event_id)
            .values(
                status=EventOutboxStatus.SENT.value,
                attempt_count=attempt_count,
                last_error=None,
                next_attempt_at=now,
                updated_at=now,
            )
        )
        self.db.flush()

    def mark_failed(
        self,
        event_id: str,
        *,
        attempt_count: int,
        backoff_seconds: int,
        error: str | None = None,
        terminal: bool = False,
    ) -> None:
        """Record a failed attempt; terminal failures leave the PENDING queue."""
        now = _now_utc()
        values: dict[str, Any] = {
            "attempt_count": attempt_count,
            "updated_at": now,
            "last_error": (error[:1000] if error else None),
        }
        if terminal:
            values["status"] = EventOutboxStatus.FAILED.value
            values["next_attempt_at"] = now
        else:
            values["status"] = EventOutboxStatus.PENDING.value
            values["next_attempt_at"] = now + timedelta(seconds=max(backoff_seconds, 1))

        self.db.execute(update(EventOutbox).where(EventOutbox.id == event_id).values(**values))
        self.db.flush()


class EventDeliveryRepository:
    """Tracks which outbox events reached the sink."""

    def __init__(self, db: Session):
        self.db = db

    def record_delivery(
        self, event_type: str, idempotency_key: str, payload: dict[str, Any]
    ) -> EventDelivery:
        """Insert a delivery row, or bump the attempt counter of an existing one."""
        existing = self.get_by_key(idempotency_key)
        now = _now_utc()
        if existing is not None:
            existing.attempt_count = (existing.attempt_count or 0) + 1
            existing.delivered_at = now
            self.db.flush()
            return existing

        record = EventDelivery(
            event_type=event_type,
            idempotency_key=idempotency_key,
            payload=payload,
            attempt_count=1,
            delivered_at=now,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_by_key(self, idempotency_key: str) -> Optional[EventDelivery]:
        result = self.db.execute(
            select(EventDelivery).where(EventDelivery.idempotency_key == idempotency_key)
        )
        return cast(Optional[EventDelivery], result.scalar_one_or_none())
