# backend/bookati/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for Bookati.
"""

from datetime import timedelta
from typing import Any

from celery.schedules import crontab

from bookati.core.config import settings

CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    # Expired locks stop counting at expiry; this only removes the rows
    "sweep-expired-booking-locks": {
        "task": "capacity.sweep_expired_locks",
        "schedule": timedelta(seconds=settings.lock_sweep_interval_seconds),
        "options": {"queue": "maintenance", "expires": settings.lock_sweep_interval_seconds},
    },
    "nightly-capacity-reconciliation": {
        "task": "capacity.reconcile_all_slots",
        "schedule": crontab(hour=settings.reconciliation_hour_utc, minute=0),
        "options": {"queue": "maintenance", "priority": 2},
    },
    "dispatch-outbox-events": {
        "task": "outbox.dispatch_pending",
        "schedule": timedelta(seconds=settings.outbox_dispatch_interval_seconds),
        "options": {"queue": "events"},
    },
}

SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "dispatch-outbox-events": {
            "task": "outbox.dispatch_pending",
            "schedule": timedelta(seconds=10),
            "options": {"queue": "events"},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
