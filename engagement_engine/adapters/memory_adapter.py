"""In-memory data source with mutation notifications."""

from __future__ import annotations

import copy
import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from engagement_engine.config import DEFAULT_CONFIG, EngineConfig
from engagement_engine.periods import in_period
from engagement_engine.schema import (
    MOOD_SCORES,
    TASK_COMPLETED,
    JournalEntryRecord,
    PeriodSpec,
    RoutineRecord,
    TaskRecord,
)
from engagement_engine.sources import ChangeCallback, ChangeListeners


class InMemoryDataSource:
    """Holds records per user; every write notifies the registered listeners."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self._config = config or DEFAULT_CONFIG
        self._lock = threading.Lock()
        self._tasks: dict[str, list[TaskRecord]] = defaultdict(list)
        self._routines: dict[str, list[RoutineRecord]] = defaultdict(list)
        self._entries: dict[str, list[JournalEntryRecord]] = defaultdict(list)
        self._listeners = ChangeListeners()

    # reads

    def fetch_tasks(self, user_id: str, period: PeriodSpec) -> list[TaskRecord]:
        with self._lock:
            tasks = list(self._tasks[user_id])
        return [
            task
            for task in tasks
            if task.created_at is None
            or in_period(task.created_at, period, self._config)
            or (task.completed_at is not None and in_period(task.completed_at, period, self._config))
        ]

    def fetch_routines(self, user_id: str) -> list[RoutineRecord]:
        with self._lock:
            # Steps are mutated in place by toggle_step.
            return copy.deepcopy(self._routines[user_id])

    def fetch_journal_entries(self, user_id: str, period: PeriodSpec) -> list[JournalEntryRecord]:
        with self._lock:
            entries = list(self._entries[user_id])
        return [entry for entry in entries if in_period(entry.date, period, self._config)]

    def on_external_data_changed(self, callback: ChangeCallback) -> Callable[[], None]:
        return self._listeners.add(callback)

    # writes

    def add_task(self, user_id: str, task: TaskRecord) -> None:
        with self._lock:
            self._tasks[user_id].append(task)
        self._listeners.notify(user_id)

    def complete_task(self, user_id: str, task_id: str, when: datetime) -> None:
        with self._lock:
            tasks = self._tasks[user_id]
            for position, task in enumerate(tasks):
                if task.id == task_id:
                    tasks[position] = replace(task, status=TASK_COMPLETED, completed_at=when)
                    break
            else:
                raise KeyError(f"unknown task '{task_id}' for user '{user_id}'")
        self._listeners.notify(user_id)

    def add_routine(self, user_id: str, routine: RoutineRecord) -> None:
        with self._lock:
            self._routines[user_id].append(routine)
        self._listeners.notify(user_id)

    def toggle_step(self, user_id: str, routine_id: str, step_id: str, when: datetime) -> None:
        with self._lock:
            routine = next((r for r in self._routines[user_id] if r.id == routine_id), None)
            step = next((s for s in routine.steps if s.id == step_id), None) if routine else None
            if step is None:
                raise KeyError(f"unknown step '{step_id}' in routine '{routine_id}'")
            step.completed = not step.completed
            step.completed_at = when if step.completed else None
            routine.completed = all(s.completed for s in routine.steps)
            routine.updated_at = when
        self._listeners.notify(user_id)

    def add_journal_entry(self, user_id: str, entry: JournalEntryRecord) -> None:
        if entry.mood not in MOOD_SCORES:
            raise ValueError(f"invalid mood '{entry.mood}'")
        with self._lock:
            self._entries[user_id].append(entry)
        self._listeners.notify(user_id)
