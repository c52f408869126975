"""Shift expansion into slot rows, without a database."""

from datetime import date, datetime, time, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

from bookati.services.slot_service import SlotService, postgres_dow


def _shift(**overrides):
    service = SimpleNamespace(duration_minutes=None, capacity_per_slot=8)
    values = dict(
        id="shift-1",
        tenant_id="tenant-a",
        service=service,
        days_of_week=[1],
        start_time=time(9, 0),
        end_time=time(12, 0),
        timezone="UTC",
        slot_duration_minutes=None,
        capacity_per_slot=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _build(shift, start: date, end: date):
    return SlotService(MagicMock())._build_slot_rows(shift, start, end)


def test_postgres_dow_counts_from_sunday():
    assert postgres_dow(date(2030, 1, 6)) == 0  # Sunday
    assert postgres_dow(date(2030, 1, 7)) == 1  # Monday
    assert postgres_dow(date(2030, 1, 12)) == 6  # Saturday


def test_only_matching_weekdays_get_slots(monkeypatch):
    from bookati.core.config import settings

    monkeypatch.setattr(settings, "slot_granularity_minutes", 60)
    rows = _build(_shift(days_of_week=[1]), date(2030, 1, 6), date(2030, 1, 12))

    assert {row["slot_date"] for row in rows} == {date(2030, 1, 7)}
    assert [row["start_time"] for row in rows] == [time(9, 0), time(10, 0), time(11, 0)]


def test_slots_are_back_to_back_and_never_overrun_the_shift():
    rows = _build(
        _shift(slot_duration_minutes=45, end_time=time(11, 0)), date(2030, 1, 7), date(2030, 1, 7)
    )

    assert [(row["start_time"], row["end_time"]) for row in rows] == [
        (time(9, 0), time(9, 45)),
        (time(9, 45), time(10, 30)),
    ]


def test_duration_falls_back_to_service_then_settings(monkeypatch):
    from bookati.core.config import settings

    shift = _shift()
    shift.service.duration_minutes = 90
    rows = _build(shift, date(2030, 1, 7), date(2030, 1, 7))
    assert [row["start_time"] for row in rows] == [time(9, 0), time(10, 30)]

    shift.service.duration_minutes = None
    monkeypatch.setattr(settings, "slot_granularity_minutes", 30)
    rows = _build(shift, date(2030, 1, 7), date(2030, 1, 7))
    assert len(rows) == 6


def test_capacity_falls_back_to_service_and_counters_start_empty():
    rows = _build(_shift(slot_duration_minutes=60), date(2030, 1, 7), date(2030, 1, 7))
    assert all(row["original_capacity"] == 8 for row in rows)
    assert all(row["available_capacity"] == 8 and row["booked_count"] == 0 for row in rows)

    rows = _build(
        _shift(slot_duration_minutes=60, capacity_per_slot=3), date(2030, 1, 7), date(2030, 1, 7)
    )
    assert all(row["original_capacity"] == 3 for row in rows)


def test_utc_instants_follow_shift_timezone():
    rows = _build(
        _shift(slot_duration_minutes=60, timezone="America/New_York", end_time=time(10, 0)),
        date(2030, 7, 1),
        date(2030, 7, 1),
    )

    assert len(rows) == 1
    # EDT is UTC-4 in July
    assert rows[0]["start_time_utc"] == datetime(2030, 7, 1, 13, 0, tzinfo=timezone.utc)
    assert rows[0]["end_time_utc"] == datetime(2030, 7, 1, 14, 0, tzinfo=timezone.utc)
