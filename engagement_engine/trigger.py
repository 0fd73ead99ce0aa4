"""Recompute trigger: cached metrics for the active user and period."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional

from engagement_engine.config import DEFAULT_CONFIG, EngineConfig
from engagement_engine.errors import EngineError
from engagement_engine.periods import TODAY, canonical_token, resolve
from engagement_engine.pipeline import build_metrics, fetch_records
from engagement_engine.schema import MetricsResult
from engagement_engine.sources import DataSource

logger = logging.getLogger(__name__)

STALE = "Stale"
COMPUTING = "Computing"
FRESH = "Fresh"


class MetricsSession:
    """Serve ``MetricsResult`` for one active user and period, recomputing when stale.

    State moves ``Stale -> Computing -> Fresh``. Any mutation of the user's
    records, a change of user or period, or a data-changed signal from the
    source moves it back to ``Stale`` and drops the cached result. Each
    computation is tagged with a request sequence number; a result whose
    number is no longer the latest, or whose context was invalidated while
    it ran, is discarded rather than published.
    """

    def __init__(
        self,
        source: DataSource,
        user_id: Optional[str] = None,
        period_token: str = TODAY,
        config: Optional[EngineConfig] = None,
    ):
        self._source = source
        self._config = config or DEFAULT_CONFIG
        self._cond = threading.Condition()
        self._user_id = user_id
        self._period_token = canonical_token(period_token)
        self._state = STALE
        self._result: Optional[MetricsResult] = None
        self._generation = 0
        self._request_seq = 0
        self._unsubscribe = source.on_external_data_changed(self._on_data_changed)

    @property
    def state(self) -> str:
        with self._cond:
            return self._state

    @property
    def user_id(self) -> Optional[str]:
        with self._cond:
            return self._user_id

    @property
    def period_token(self) -> str:
        with self._cond:
            return self._period_token

    @property
    def request_seq(self) -> int:
        with self._cond:
            return self._request_seq

    @property
    def result(self) -> Optional[MetricsResult]:
        """The published result, or ``None`` unless the session is fresh."""

        with self._cond:
            return self._result if self._state == FRESH else None

    def select(self, user_id: Optional[str] = None, period_token: Optional[str] = None) -> None:
        """Switch the active user and/or period; a change invalidates the result."""

        token = canonical_token(period_token) if period_token is not None else None
        with self._cond:
            changed = []
            if user_id is not None and user_id != self._user_id:
                self._user_id = user_id
                changed.append("user")
            if token is not None and token != self._period_token:
                self._period_token = token
                changed.append("period")
            if changed:
                self._invalidate_locked(" and ".join(changed) + " changed")

    def invalidate(self, reason: str = "data changed") -> None:
        with self._cond:
            self._invalidate_locked(reason)

    def notify_mutation(self, user_id: str, collection: str) -> None:
        """Record a write to one of ``user_id``'s collections."""

        with self._cond:
            if user_id == self._user_id:
                self._invalidate_locked(f"{collection} changed")

    def _on_data_changed(self, user_id: Optional[str]) -> None:
        with self._cond:
            if user_id is None or user_id == self._user_id:
                self._invalidate_locked("external data changed")

    def _invalidate_locked(self, reason: str) -> None:
        self._generation += 1
        self._result = None
        self._state = STALE
        logger.debug("Metrics invalidated (%s), generation %d", reason, self._generation)

    def read(self, now: datetime) -> MetricsResult:
        """Return fresh metrics, recomputing synchronously when stale.

        Concurrent readers of an unchanged context wait for the computation
        already in flight. A failed fetch leaves the session stale and is
        raised to the caller.
        """

        while True:
            with self._cond:
                while self._state == COMPUTING:
                    self._cond.wait()

                if self._user_id is None:
                    raise EngineError("No active user selected", hint="call select(user_id=...) first")

                period = resolve(self._period_token, now, self._config)
                if self._state == FRESH and self._result is not None and self._result.period == period:
                    return self._result

                self._request_seq += 1
                seq = self._request_seq
                generation = self._generation
                user_id = self._user_id
                self._state = COMPUTING

            logger.info("Recomputing metrics for user %s period %s (request %d)", user_id, period.token, seq)
            try:
                tasks, routines, entries = fetch_records(self._source, user_id, period)
                result = build_metrics(user_id, tasks, routines, entries, period, now, self._config)
            except Exception:
                with self._cond:
                    if seq == self._request_seq:
                        self._state = STALE
                    self._cond.notify_all()
                raise

            with self._cond:
                if seq == self._request_seq and generation == self._generation:
                    self._result = result
                    self._state = FRESH
                    self._cond.notify_all()
                    return result

                logger.warning(
                    "Discarding superseded metrics for user %s (request %d, latest %d)",
                    user_id,
                    seq,
                    self._request_seq,
                )
                if seq == self._request_seq:
                    self._state = STALE
                self._cond.notify_all()

    def close(self) -> None:
        """Stop listening for data-changed signals."""

        self._unsubscribe()
