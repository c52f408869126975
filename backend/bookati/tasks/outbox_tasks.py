# backend/bookati/tasks/outbox_tasks.py
"""
Celery tasks for dispatching booking outbox events.

Implements a two-step workflow:
1. `outbox.dispatch_pending` periodically enqueues delivery tasks.
2. `outbox.deliver_event` runs the registered handlers with retries and backoff.

Delivery happens after the booking transaction committed, so a failing
handler only ever affects the outbox row.
"""

from __future__ import annotations

from contextlib import contextmanager
from time import monotonic
from typing import Any, Iterator, Optional, cast

from celery.app.task import Task  # noqa: F401 - used for type hints
from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from bookati.database import SessionLocal
from bookati.events.handlers import dispatch_event
from bookati.monitoring.prometheus_metrics import PrometheusMetrics
from bookati.repositories.event_outbox_repository import EventOutboxRepository
from bookati.tasks.celery_app import celery_app

logger = get_task_logger(__name__)

MAX_DELIVERY_ATTEMPTS = 5
BACKOFF_SECONDS = [30, 120, 600, 1800, 7200]


def _next_backoff(attempt_number: int) -> int:
    """Return backoff delay for the given attempt (1-indexed)."""
    index = max(0, min(attempt_number - 1, len(BACKOFF_SECONDS) - 1))
    return BACKOFF_SECONDS[index]


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Provide transactional scope for use in tasks."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@celery_app.task(name="outbox.dispatch_pending", max_retries=0)
def dispatch_pending() -> int:
    """
    Fetch pending outbox events and enqueue delivery tasks.

    Returns the number of events scheduled.
    """
    with _session_scope() as session:
        pending = EventOutboxRepository(session).fetch_pending(limit=200)
        event_ids = [event.id for event in pending]

    for event_id in event_ids:
        deliver_event.apply_async((event_id,))
    if event_ids:
        logger.info("Scheduled %s outbox events for delivery", len(event_ids))
    return len(event_ids)


@celery_app.task(
    name="outbox.deliver_event",
    bind=True,
    max_retries=MAX_DELIVERY_ATTEMPTS,
    default_retry_delay=30,
)
def deliver_event(self: "Task[Any, Any]", event_id: str) -> Optional[str]:
    """Deliver a single outbox event to its handlers."""
    session = SessionLocal()
    start: Optional[float] = None

    try:
        repo = EventOutboxRepository(session)
        event = repo.get_by_id(event_id)
        if event is None:
            logger.warning("Outbox event %s missing; skipping", event_id)
            session.commit()
            return None

        attempt_number = event.attempt_count + 1
        event_type = event.event_type
        PrometheusMetrics.record_event_attempt(event_type)

        try:
            start = monotonic()
            dispatch_event(event_type, dict(event.payload or {}), event.idempotency_key, session)
            repo.mark_sent(event.id, attempt_number)
            session.commit()
            PrometheusMetrics.observe_event_dispatch(event_type, monotonic() - start)
            PrometheusMetrics.record_event_outcome(event_type, "sent")
            logger.info(
                "Delivered outbox event %s type=%s attempts=%s",
                event_id,
                event_type,
                attempt_number,
            )
            return cast(str, event_id)
        except Exception as exc:
            # Handler side effects in this session are discarded with the attempt
            session.rollback()
            duration = (monotonic() - start) if start is not None else 0.0
            PrometheusMetrics.observe_event_dispatch(event_type, duration)
            backoff = _next_backoff(attempt_number)
            terminal = attempt_number >= MAX_DELIVERY_ATTEMPTS
            repo.mark_failed(
                event_id,
                attempt_count=attempt_number,
                backoff_seconds=backoff,
                error=str(exc),
                terminal=terminal,
            )
            session.commit()
            if terminal:
                PrometheusMetrics.record_event_outcome(event_type, "failed")
                logger.exception(
                    "Outbox event %s failed permanently after %s attempts",
                    event_id,
                    attempt_number,
                )
                raise
            logger.warning(
                "Retrying outbox event %s attempt=%s backoff=%ss",
                event_id,
                attempt_number,
                backoff,
            )
            raise self.retry(countdown=backoff, exc=exc)
    finally:
        session.close()
