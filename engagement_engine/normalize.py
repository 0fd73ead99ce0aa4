"""Normalization of task, routine and journal records into raw events."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from engagement_engine.config import DEFAULT_CONFIG, EngineConfig
from engagement_engine.periods import in_period, localize
from engagement_engine.schema import (
    ROUTINE_CATEGORIES,
    TASK_COMPLETED,
    JournalEntryRecord,
    PeriodSpec,
    RawEvent,
    RoutineRecord,
    TaskRecord,
)


def routine_category(routine: RoutineRecord) -> str:
    category = (routine.category or "").strip().lower()
    return category if category in ROUTINE_CATEGORIES else "other"


def routine_slots(routine: RoutineRecord) -> int:
    """Possible step completions; a routine without steps is one slot."""

    return len(routine.steps) or 1


def routine_done(routine: RoutineRecord) -> int:
    if routine.steps:
        return sum(1 for step in routine.steps if step.completed)
    return 1 if routine.completed else 0


def _task_events(tasks: Iterable[TaskRecord], now: datetime) -> list[RawEvent]:
    events = []
    for task in tasks:
        if task.status != TASK_COMPLETED:
            continue
        events.append(RawEvent.task(task.completed_at or task.created_at or now))
    return events


def _routine_events(routines: Iterable[RoutineRecord], now: datetime) -> list[RawEvent]:
    events = []
    for routine in routines:
        category = routine_category(routine)
        # Without an activity timestamp the current snapshot stands for today.
        fallback = routine.updated_at or now
        if not routine.steps:
            if routine.completed:
                events.append(RawEvent.routine_step(fallback, category))
            continue
        for step in routine.steps:
            if step.completed:
                events.append(RawEvent.routine_step(step.completed_at or fallback, category))
    return events


def _journal_events(entries: Iterable[JournalEntryRecord]) -> list[RawEvent]:
    return [
        RawEvent.journal_entry(entry.date, entry.mood, reasons=entry.reasons, tags=entry.tags)
        for entry in entries
    ]


def normalize(
    tasks: Iterable[TaskRecord],
    routines: Iterable[RoutineRecord],
    entries: Iterable[JournalEntryRecord],
    now: datetime,
    config: Optional[EngineConfig] = None,
) -> list[RawEvent]:
    """Turn the three source collections into one chronologically ordered event list."""

    tz = ZoneInfo((config or DEFAULT_CONFIG).timezone)
    events = _task_events(tasks, now) + _routine_events(routines, now) + _journal_events(entries)
    # Stable: records sharing a timestamp keep their source order.
    return sorted(events, key=lambda e: localize(e.timestamp, tz))


def tasks_in_period(
    tasks: Iterable[TaskRecord], period: PeriodSpec, config: Optional[EngineConfig] = None
) -> list[TaskRecord]:
    """Tasks created inside the period; tasks without a creation time always count."""

    config = config or DEFAULT_CONFIG
    return [task for task in tasks if task.created_at is None or in_period(task.created_at, period, config)]


def item_totals(
    tasks: list[TaskRecord], routines: list[RoutineRecord], period: PeriodSpec, config: Optional[EngineConfig] = None
) -> tuple[int, int]:
    """Return ``(total_items, possible_units)`` for the period.

    ``total_items`` is tasks in the period plus routine step slots;
    ``possible_units`` adds one journal-eligible slot per day.
    """

    total_items = len(tasks_in_period(tasks, period, config)) + sum(routine_slots(r) for r in routines)
    return total_items, total_items + period.day_count
