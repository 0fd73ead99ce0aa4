import json
from datetime import datetime

import pytest

from engagement_engine.adapters.json_adapter import JsonDataSource
from engagement_engine.errors import DataFetchFailed
from engagement_engine.periods import resolve

NOW = datetime.fromisoformat("2025-03-12T20:00:00-03:00")


def write_payload(tmp_path, payload):
    path = tmp_path / "records.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def sample_payload():
    return {
        "users": {
            "u1": {
                "tasks": [
                    {"id": "t1", "status": "completed", "created_at": "2025-03-10T08:00:00-03:00",
                     "completed_at": "2025-03-10T09:00:00-03:00"},
                    {"id": "t2", "status": "pending", "created_at": "2025-02-01T08:00:00-03:00"},
                ],
                "routines": [
                    {"id": "r1", "category": "morning", "steps": [{"id": "s1", "completed": True}]},
                    {"id": "r2", "completed": True},
                ],
                "journal_entries": [
                    {"id": "j1", "date": "2025-03-11T21:00:00-03:00", "mood": "good",
                     "reasons": ["Focused", " "], "tags": ["Work"]},
                    {"id": "j2", "date": "2025-02-20T21:00:00-03:00", "mood": "bad"},
                ],
            }
        }
    }


def test_json_source_reads_and_filters(tmp_path):
    source = JsonDataSource(write_payload(tmp_path, sample_payload()))
    week = resolve("Week", NOW)

    tasks = source.fetch_tasks("u1", week)
    assert [t.id for t in tasks] == ["t1"]
    assert tasks[0].completed_at == datetime.fromisoformat("2025-03-10T09:00:00-03:00")

    routines = source.fetch_routines("u1")
    assert [r.category for r in routines] == ["morning", "other"]
    assert routines[0].steps[0].completed is True

    entries = source.fetch_journal_entries("u1", week)
    assert len(entries) == 1
    assert entries[0].reasons == ["Focused"]
    assert entries[0].tags == ["Work"]


def test_unknown_user_has_no_records(tmp_path):
    source = JsonDataSource(write_payload(tmp_path, sample_payload()))
    assert source.fetch_tasks("nobody", resolve("All", NOW)) == []
    assert source.fetch_routines("nobody") == []


def test_missing_file_fails_fetch(tmp_path):
    source = JsonDataSource(tmp_path / "missing.json")
    with pytest.raises(DataFetchFailed) as info:
        source.fetch_routines("u1")
    assert info.value.collection == "routines"


@pytest.mark.parametrize(
    "collection, item",
    [
        ("tasks", {"id": "t1", "status": "done"}),
        ("tasks", {"id": "t1", "status": "completed", "created_at": "yesterday"}),
        ("journal_entries", {"id": "j1", "date": "2025-03-11T21:00:00", "mood": "ecstatic"}),
        ("journal_entries", {"id": "j1", "mood": "good"}),
        ("journal_entries", {"id": "j1", "date": "2025-03-11T21:00:00", "mood": "good", "tags": "Work"}),
    ],
)
def test_malformed_records_fail_fetch(tmp_path, collection, item):
    source = JsonDataSource(write_payload(tmp_path, {"users": {"u1": {collection: [item]}}}))
    week = resolve("Week", NOW)
    with pytest.raises(DataFetchFailed):
        if collection == "tasks":
            source.fetch_tasks("u1", week)
        else:
            source.fetch_journal_entries("u1", week)


def test_invalid_json_fails_fetch(tmp_path):
    path = tmp_path / "records.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(DataFetchFailed):
        JsonDataSource(path).fetch_routines("u1")


def test_non_object_user_fails_fetch(tmp_path):
    source = JsonDataSource(write_payload(tmp_path, {"users": {"u1": ["not", "an", "object"]}}))
    with pytest.raises(DataFetchFailed, match="must be an object"):
        source.fetch_routines("u1")


def test_string_step_flags_are_parsed(tmp_path):
    routine = {
        "id": "r1",
        "completed": "false",
        "steps": [{"id": "s1", "completed": "false"}, {"id": "s2", "completed": "true"}],
    }
    source = JsonDataSource(write_payload(tmp_path, {"users": {"u1": {"routines": [routine]}}}))

    parsed = source.fetch_routines("u1")[0]
    assert parsed.completed is False
    assert [step.completed for step in parsed.steps] == [False, True]


def test_unknown_step_flag_fails_fetch(tmp_path):
    routine = {"id": "r1", "steps": [{"id": "s1", "completed": "maybe"}]}
    source = JsonDataSource(write_payload(tmp_path, {"users": {"u1": {"routines": [routine]}}}))
    with pytest.raises(DataFetchFailed, match="invalid step completed"):
        source.fetch_routines("u1")


def test_change_notifications(tmp_path):
    source = JsonDataSource(write_payload(tmp_path, sample_payload()))
    seen = []
    unsubscribe = source.on_external_data_changed(seen.append)

    source.notify_changed("u1")
    source.notify_changed()
    unsubscribe()
    source.notify_changed("u2")

    assert seen == ["u1", None]
