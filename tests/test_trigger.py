import threading
import time
from datetime import datetime

import pytest

from engagement_engine.adapters.memory_adapter import InMemoryDataSource
from engagement_engine.errors import DataFetchFailed, EngineError, InvalidPeriod
from engagement_engine.schema import JournalEntryRecord, TaskRecord
from engagement_engine.trigger import COMPUTING, FRESH, STALE, MetricsSession


def at(value: str) -> datetime:
    return datetime.fromisoformat(value)


NOW = at("2025-03-12T20:00:00-03:00")


class CountingSource(InMemoryDataSource):
    def __init__(self):
        super().__init__()
        self.fetches = 0

    def fetch_tasks(self, user_id, period):
        self.fetches += 1
        return super().fetch_tasks(user_id, period)


def completed_task(task_id, when="2025-03-12T10:00:00-03:00"):
    return TaskRecord(task_id, "completed", at(when), at(when))


def test_read_moves_stale_to_fresh_and_caches():
    source = CountingSource()
    source.add_task("u1", completed_task("t1"))
    session = MetricsSession(source, user_id="u1", period_token="Week")
    assert session.state == STALE
    assert session.result is None

    first = session.read(NOW)
    assert session.state == FRESH
    assert session.read(NOW) is first
    assert session.result is first
    assert source.fetches == 1


def test_source_mutation_invalidates():
    source = CountingSource()
    session = MetricsSession(source, user_id="u1", period_token="Week")
    assert session.read(NOW).completed_units == 0

    source.add_task("u1", completed_task("t1"))
    assert session.state == STALE
    assert session.result is None
    assert session.read(NOW).completed_units == 1

    source.add_journal_entry("u2", JournalEntryRecord("j1", NOW, "good"))
    assert session.state == FRESH


def test_notify_mutation_only_for_active_user():
    session = MetricsSession(InMemoryDataSource(), user_id="u1", period_token="Today")
    session.read(NOW)

    session.notify_mutation("u2", "tasks")
    assert session.state == FRESH

    session.notify_mutation("u1", "routines")
    assert session.state == STALE


def test_select_changes_context():
    source = CountingSource()
    session = MetricsSession(source, user_id="u1", period_token="Week")
    session.read(NOW)

    session.select(period_token="Week")
    assert session.state == FRESH

    session.select(period_token="Mês")
    assert session.state == STALE
    assert session.period_token == "Month"
    assert session.read(NOW).period.day_count == 31

    session.select(user_id="u2")
    assert session.read(NOW).user_id == "u2"

    with pytest.raises(InvalidPeriod):
        session.select(period_token="Decade")
    assert session.period_token == "Month"


def test_new_day_recomputes_period():
    source = CountingSource()
    session = MetricsSession(source, user_id="u1", period_token="Today")
    first = session.read(NOW)
    second = session.read(at("2025-03-13T08:00:00-03:00"))
    assert second.period.start > first.period.start
    assert source.fetches == 2


def test_failed_fetch_stays_stale_and_retries():
    class FlakySource(InMemoryDataSource):
        failures = 1

        def fetch_journal_entries(self, user_id, period):
            if self.failures:
                self.failures -= 1
                raise DataFetchFailed("journal_entries", user_id, "timeout")
            return super().fetch_journal_entries(user_id, period)

    session = MetricsSession(FlakySource(), user_id="u1", period_token="Week")
    with pytest.raises(DataFetchFailed):
        session.read(NOW)
    assert session.state == STALE
    assert session.result is None

    assert session.read(NOW).user_id == "u1"
    assert session.state == FRESH


def test_change_during_computation_discards_result():
    class ChangingSource(InMemoryDataSource):
        changed = False

        def fetch_journal_entries(self, user_id, period):
            entries = super().fetch_journal_entries(user_id, period)
            if not self.changed:
                self.changed = True
                self.add_task(user_id, completed_task("late"))
            return entries

    session = MetricsSession(ChangingSource(), user_id="u1", period_token="Week")
    result = session.read(NOW)
    assert result.completed_units == 1
    assert session.request_seq == 2
    assert session.state == FRESH


def test_user_switch_during_computation_discards_old_user():
    class SwitchingSource(InMemoryDataSource):
        session = None

        def fetch_routines(self, user_id):
            if user_id == "u1":
                self.session.select(user_id="u2")
            return super().fetch_routines(user_id)

    source = SwitchingSource()
    source.add_task("u1", completed_task("t1"))
    session = MetricsSession(source, user_id="u1", period_token="Week")
    source.session = session

    result = session.read(NOW)
    assert result.user_id == "u2"
    assert result.completed_units == 0


def test_concurrent_reads_share_one_computation():
    class SlowSource(CountingSource):
        def __init__(self):
            super().__init__()
            self.entered = threading.Event()
            self.release = threading.Event()

        def fetch_tasks(self, user_id, period):
            self.entered.set()
            self.release.wait(timeout=5)
            return super().fetch_tasks(user_id, period)

    source = SlowSource()
    session = MetricsSession(source, user_id="u1", period_token="Week")
    results = []

    first = threading.Thread(target=lambda: results.append(session.read(NOW)))
    first.start()
    assert source.entered.wait(timeout=5)
    assert session.state == COMPUTING

    second = threading.Thread(target=lambda: results.append(session.read(NOW)))
    second.start()
    time.sleep(0.05)
    source.release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert len(results) == 2
    assert results[0] is results[1]
    assert source.fetches == 1


def test_read_requires_user_and_close_unsubscribes():
    source = InMemoryDataSource()
    session = MetricsSession(source)
    with pytest.raises(EngineError):
        session.read(NOW)

    session.select(user_id="u1")
    session.read(NOW)
    session.close()
    source.add_task("u1", completed_task("t1"))
    assert session.state == FRESH


def test_failing_listener_does_not_keep_later_sessions_fresh(caplog):
    source = CountingSource()

    def broken(user_id):
        raise RuntimeError("listener crashed")

    source.on_external_data_changed(broken)
    session = MetricsSession(source, user_id="u1", period_token="Week")
    assert session.read(NOW).completed_units == 0

    source.add_task("u1", completed_task("t1"))
    assert session.state == STALE
    assert "Change listener" in caplog.text
    assert session.read(NOW).completed_units == 1


def test_notify_mutation_sees_user_switched_under_the_lock():
    source = InMemoryDataSource()
    session = MetricsSession(source, user_id="u1", period_token="Today")
    session.read(NOW)
    done = threading.Event()

    def write_for_u1():
        session.notify_mutation("u1", "tasks")
        done.set()

    with session._cond:
        worker = threading.Thread(target=write_for_u1)
        worker.start()
        assert not done.wait(0.05)
        session.select(user_id="u2")
        session.read(NOW)

    worker.join(timeout=1)
    assert done.is_set()
    # The write belonged to the previous user; u2's result stays published.
    assert session.user_id == "u2"
    assert session.state == FRESH
