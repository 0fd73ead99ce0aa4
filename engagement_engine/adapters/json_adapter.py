"""JSON file data source for task, routine and journal records."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from engagement_engine.config import DEFAULT_CONFIG, EngineConfig
from engagement_engine.errors import DataFetchFailed
from engagement_engine.periods import in_period
from engagement_engine.schema import (
    MOOD_SCORES,
    JournalEntryRecord,
    PeriodSpec,
    RoutineRecord,
    RoutineStepRecord,
    TaskRecord,
)
from engagement_engine.sources import ChangeCallback, ChangeListeners

logger = logging.getLogger(__name__)

_TASK_STATUSES = {"pending", "in_progress", "completed", "paused", "blocked", "canceled", "deferred"}


def _timestamp(value, label: str, index: int, required: bool = False) -> Optional[datetime]:
    if value in (None, ""):
        if required:
            raise ValueError(f"Item {index}: missing {label}")
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError(f"Item {index}: malformed {label}") from exc


def _labels(value, label: str, index: int) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"Item {index}: {label} must be a list")
    return [str(item).strip() for item in value if str(item).strip()]


def _flag(value, label: str, index: int) -> bool:
    if value in (None, ""):
        return False
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    raise ValueError(f"Item {index}: invalid {label} '{value}'")


def parse_task(item: dict, index: int) -> TaskRecord:
    if not item.get("id"):
        raise ValueError(f"Item {index}: missing required field 'id'")
    status = str(item.get("status", "")).strip()
    if status not in _TASK_STATUSES:
        raise ValueError(f"Item {index}: invalid status '{status}'")
    return TaskRecord(
        id=str(item["id"]),
        status=status,
        created_at=_timestamp(item.get("created_at"), "created_at", index),
        completed_at=_timestamp(item.get("completed_at"), "completed_at", index),
    )


def parse_routine(item: dict, index: int) -> RoutineRecord:
    if not item.get("id"):
        raise ValueError(f"Item {index}: missing required field 'id'")

    steps_raw = item.get("steps") or []
    if not isinstance(steps_raw, list) or not all(isinstance(step, dict) for step in steps_raw):
        raise ValueError(f"Item {index}: steps must be a list of objects")
    steps = [
        RoutineStepRecord(
            id=str(step.get("id", f"{item['id']}-{position}")),
            completed=_flag(step.get("completed"), "step completed", index),
            completed_at=_timestamp(step.get("completed_at"), "step completed_at", index),
        )
        for position, step in enumerate(steps_raw, start=1)
    ]

    return RoutineRecord(
        id=str(item["id"]),
        category=str(item.get("category") or "other"),
        steps=steps,
        completed=_flag(item.get("completed"), "completed", index),
        updated_at=_timestamp(item.get("updated_at"), "updated_at", index),
    )


def parse_journal_entry(item: dict, index: int) -> JournalEntryRecord:
    if not item.get("id"):
        raise ValueError(f"Item {index}: missing required field 'id'")
    mood = str(item.get("mood", "")).strip()
    if mood not in MOOD_SCORES:
        raise ValueError(f"Item {index}: invalid mood '{mood}'")
    return JournalEntryRecord(
        id=str(item["id"]),
        date=_timestamp(item.get("date"), "date", index, required=True),
        mood=mood,
        reasons=_labels(item.get("reasons"), "reasons", index),
        tags=_labels(item.get("tags"), "tags", index),
    )


class JsonDataSource:
    """Read records from a JSON document keyed by user id.

    Layout: ``{"users": {"<id>": {"tasks": [...], "routines": [...],
    "journal_entries": [...]}}}``. The file is re-read on every fetch.
    """

    def __init__(self, file_path: Union[str, Path], config: Optional[EngineConfig] = None):
        self.file_path = Path(file_path)
        self._config = config or DEFAULT_CONFIG
        self._listeners = ChangeListeners()

    def _collection(self, user_id: str, name: str, parser: Callable[[dict, int], object]) -> list:
        try:
            with open(self.file_path, encoding="utf-8") as handle:
                payload = json.load(handle)
            if not isinstance(payload, dict) or not isinstance(payload.get("users", {}), dict):
                raise ValueError("JSON payload must be an object with a 'users' mapping")

            user = payload.get("users", {}).get(user_id) or {}
            if not isinstance(user, dict):
                raise ValueError(f"user '{user_id}' must be an object")
            items = user.get(name) or []
            if not isinstance(items, list):
                raise ValueError(f"'{name}' must be a list of objects")
            records = []
            for i, item in enumerate(items, start=1):
                if not isinstance(item, dict):
                    raise ValueError(f"Item {i}: expected an object")
                records.append(parser(item, i))
            return records
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError.
            raise DataFetchFailed(name, user_id, str(exc)) from exc

    def fetch_tasks(self, user_id: str, period: PeriodSpec) -> list[TaskRecord]:
        tasks = self._collection(user_id, "tasks", parse_task)
        return [
            task
            for task in tasks
            if task.created_at is None
            or in_period(task.created_at, period, self._config)
            or (task.completed_at is not None and in_period(task.completed_at, period, self._config))
        ]

    def fetch_routines(self, user_id: str) -> list[RoutineRecord]:
        return self._collection(user_id, "routines", parse_routine)

    def fetch_journal_entries(self, user_id: str, period: PeriodSpec) -> list[JournalEntryRecord]:
        entries = self._collection(user_id, "journal_entries", parse_journal_entry)
        return [entry for entry in entries if in_period(entry.date, period, self._config)]

    def on_external_data_changed(self, callback: ChangeCallback) -> Callable[[], None]:
        return self._listeners.add(callback)

    def notify_changed(self, user_id: Optional[str] = None) -> None:
        """Signal that the file was rewritten."""

        logger.debug("Data file %s changed (user=%s)", self.file_path, user_id)
        self._listeners.notify(user_id)
