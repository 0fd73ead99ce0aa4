from datetime import date, datetime

from engagement_engine.buckets import bucket
from engagement_engine.periods import resolve
from engagement_engine.schema import RawEvent


def at(value: str) -> datetime:
    return datetime.fromisoformat(value)


NOW = at("2025-03-12T15:00:00-03:00")


def test_empty_week_still_has_seven_buckets():
    buckets = bucket([], resolve("Week", NOW))
    assert [b.date for b in buckets] == [date(2025, 3, d) for d in range(10, 17)]
    assert all(b.completed_count == 0 for b in buckets)


def test_every_kind_counts_one_micro_unit():
    events = [
        RawEvent.task(at("2025-03-11T09:00:00-03:00")),
        RawEvent.routine_step(at("2025-03-11T07:00:00-03:00"), "morning"),
        RawEvent.journal_entry(at("2025-03-11T21:00:00-03:00"), "terrible"),
        RawEvent.task(at("2025-03-12T10:00:00-03:00")),
    ]
    counts = [b.completed_count for b in bucket(events, resolve("Week", NOW))]
    assert counts == [0, 3, 1, 0, 0, 0, 0]


def test_period_boundaries_are_half_open():
    week = resolve("Week", NOW)
    events = [RawEvent.task(week.start), RawEvent.task(week.end)]
    buckets = bucket(events, week)
    assert buckets[0].completed_count == 1
    assert sum(b.completed_count for b in buckets) == 1


def test_events_are_keyed_by_local_day():
    # 01:30 UTC on the 11th is 22:30 on the 10th in the reference zone.
    events = [RawEvent.task(at("2025-03-11T01:30:00+00:00"))]
    buckets = bucket(events, resolve("Week", NOW))
    assert buckets[0].date == date(2025, 3, 10)
    assert buckets[0].completed_count == 1


def test_all_period_buckets_trailing_window():
    events = [
        RawEvent.task(at("2024-01-05T10:00:00-03:00")),
        RawEvent.task(at("2025-03-12T10:00:00-03:00")),
    ]
    buckets = bucket(events, resolve("All", NOW))
    assert len(buckets) == 30
    assert buckets[-1].date == date(2025, 3, 12)
    assert sum(b.completed_count for b in buckets) == 1
