import json
import sqlite3
from datetime import date

import pytest

from planner_app.planner import baseline
from planner_app.planner.storage import (
    LOGS,
    SYLLABUS,
    TODAY_TODOS,
    CollectionGateway,
    MemoryBlobStore,
    SchemaMismatchError,
    SQLiteBlobStore,
    unwrap,
    wrap,
)
from planner_app.planner.models import LogEntry, WeeklySummary
from planner_app.planner.stores import DailyTaskStore, LogStore, SyllabusStore, WeeklySummaryStore

from conftest import FailingStore, make_log


def test_sqlite_roundtrip_and_backup(tmp_path):
    store = SQLiteBlobStore(tmp_path / "planner.db")
    assert store.get(LOGS) is None
    store.set(LOGS, wrap(LOGS, [make_log("a", "2024-01-02", "physics", 30)]))
    store.set(LOGS, wrap(LOGS, [make_log("b", "2024-01-02", "physics", 45)]))
    payload = store.get(LOGS)
    assert unwrap(LOGS, payload)[0]["id"] == "b"

    backup = store.backup_database()
    assert backup.exists()
    assert SQLiteBlobStore(backup).get(LOGS) == payload


def test_sqlite_invalid_json_is_schema_mismatch(tmp_path):
    db = tmp_path / "planner.db"
    store = SQLiteBlobStore(db)
    with sqlite3.connect(db) as conn:
        conn.execute(
            "INSERT INTO collections (name, payload, updated_at) VALUES (?, ?, ?)",
            (LOGS, "{not json", "2024-01-01T00:00:00"),
        )
    with pytest.raises(SchemaMismatchError):
        store.get(LOGS)


def test_unwrap_accepts_bare_payload_and_rejects_foreign_envelope():
    assert unwrap(LOGS, [1, 2]) == [1, 2]
    assert unwrap(LOGS, wrap(LOGS, [3])) == [3]
    with pytest.raises(SchemaMismatchError):
        unwrap(LOGS, wrap(SYLLABUS, []))
    with pytest.raises(SchemaMismatchError):
        unwrap(LOGS, {"schema": LOGS, "version": 99, "data": []})


def test_null_collection_is_seeded_and_written_back(memory_store, gateway):
    store = SyllabusStore.load(gateway)
    assert len(store) == len(baseline.baseline_syllabus())
    assert memory_store.writes[SYLLABUS] == 1
    assert unwrap(SYLLABUS, memory_store.get(SYLLABUS))[0]["subjectId"] == "physics"


def test_missing_day_is_not_seeded(memory_store, gateway):
    tasks = DailyTaskStore.load(gateway)
    assert tasks.day is None
    assert TODAY_TODOS not in memory_store.writes


def test_malformed_collection_falls_back_without_overwrite():
    backend = MemoryBlobStore({LOGS: {"unexpected": True}})
    logs = LogStore.load(CollectionGateway(backend))
    assert logs.all() == []
    assert LOGS not in backend.writes
    assert backend.get(LOGS) == {"unexpected": True}


def test_foreign_schema_falls_back_to_baseline():
    backend = MemoryBlobStore({LOGS: {"schema": "tests", "version": 1, "data": []}})
    logs = LogStore.load(CollectionGateway(backend))
    assert len(logs) == 0
    assert LOGS not in backend.writes


def test_legacy_bare_list_is_parsed():
    backend = MemoryBlobStore({LOGS: [make_log("a", "2024-01-02", "physics", 30)]})
    logs = LogStore.load(CollectionGateway(backend))
    assert [e.id for e in logs.all()] == ["a"]


def test_read_failure_uses_baseline_without_writing():
    backend = FailingStore(fail_get=True)
    syllabus = SyllabusStore.load(CollectionGateway(backend))
    assert len(syllabus) == len(baseline.baseline_syllabus())
    assert backend.writes == {}


def test_write_failure_keeps_memory_state():
    backend = FailingStore(fail_set=[LOGS])
    logs = LogStore(CollectionGateway(backend))
    entry = LogEntry.from_dict(make_log("a", "2024-01-02", "physics", 30))
    assert logs.append([entry]) is False
    assert logs.last_save_ok is False
    assert logs.all() == [entry]


def test_writes_are_enveloped(memory_store, gateway):
    logs = LogStore(gateway)
    logs.append([LogEntry.from_dict(make_log("a", "2024-01-02", "physics", 30))])
    stored = memory_store.get(LOGS)
    assert stored["schema"] == LOGS
    assert stored["version"] == 1
    assert json.dumps(stored["data"])


def test_summary_upsert_replaces_by_week(gateway):
    summaries = WeeklySummaryStore(gateway)
    first = WeeklySummary(date(2023, 12, 31), 180, 26, {"physics": 17})
    second = WeeklySummary(date(2024, 1, 7), 70, 10, {"chemistry": 10})
    summaries.upsert([first, second])
    summaries.upsert([WeeklySummary(date(2023, 12, 31), 210, 30, {"physics": 30})])
    by_week = summaries.by_week()
    assert len(summaries) == 2
    assert by_week[date(2023, 12, 31)].total_minutes == 210
