"""Data collaborator contract consumed by the engine."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

from engagement_engine.schema import JournalEntryRecord, PeriodSpec, RoutineRecord, TaskRecord

logger = logging.getLogger(__name__)

# Called with the affected user id, or None when every user may be affected.
ChangeCallback = Callable[[Optional[str]], None]


class DataSource(Protocol):
    """Reads a user's raw records; raises ``DataFetchFailed`` when a read fails."""

    def fetch_tasks(self, user_id: str, period: PeriodSpec) -> list[TaskRecord]:
        ...

    def fetch_routines(self, user_id: str) -> list[RoutineRecord]:
        ...

    def fetch_journal_entries(self, user_id: str, period: PeriodSpec) -> list[JournalEntryRecord]:
        ...

    def on_external_data_changed(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register ``callback`` for every write; returns an unsubscribe function."""
        ...


class ChangeListeners:
    """Thread-safe callback list shared by the bundled data sources."""

    def __init__(self):
        self._lock = threading.Lock()
        self._callbacks: list[ChangeCallback] = []

    def add(self, callback: ChangeCallback) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def notify(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            # One failing listener must not keep the others stale.
            try:
                callback(user_id)
            except Exception:
                logger.exception("Change listener %r failed for user %s", callback, user_id)
