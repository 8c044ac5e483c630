import json
from datetime import datetime, timedelta, timezone

from studyclock.tracker.models import ChapterSelection, CustomSelection, Subject, TaskSelection
from studyclock.tracker.snapshots import (
    PAUSED_KEY,
    RUNNING_KEY,
    PausedSnapshot,
    RunningSnapshot,
    SnapshotManager,
)
from studyclock.tracker.storage import MemoryStore

NOW = datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


def test_running_snapshot_wire_format():
    snapshot = RunningSnapshot(NOW, 30, ChapterSelection(Subject.PHYSICS, 5, "Notes"), NOW - timedelta(seconds=30))
    data = json.loads(snapshot.to_json())
    assert data["startedAt"] == "2024-03-01T10:00:00+00:00"
    assert data["accumulatedSeconds"] == 30
    assert data["sessionStartedAt"] == "2024-03-01T09:59:30+00:00"
    assert data["selection"] == {"kind": "chapter", "subject": "physics", "chapterSerial": 5, "material": "Notes"}
    assert RunningSnapshot.from_json(snapshot.to_json()) == snapshot


def test_running_snapshot_without_session_start_falls_back():
    raw = json.dumps(
        {"startedAt": "2024-03-01T10:00:00Z", "accumulatedSeconds": 45, "selection": {"kind": "custom", "title": ""}}
    )
    snapshot = RunningSnapshot.from_json(raw)
    assert snapshot.session_started_at == NOW - timedelta(seconds=45)
    assert snapshot.selection == CustomSelection()


def test_paused_snapshot_tolerates_missing_times():
    raw = json.dumps({"accumulatedSeconds": 12, "selection": {"kind": "task", "taskId": "t9", "title": "Plan"}})
    snapshot = PausedSnapshot.from_json(raw)
    assert snapshot.accumulated_seconds == 12
    assert snapshot.paused_at is None
    assert snapshot.session_started_at is None
    assert snapshot.selection == TaskSelection("t9", "Plan")


def test_load_prefers_running_and_clears_paused():
    store = MemoryStore()
    manager = SnapshotManager(store)
    manager.save_paused(PausedSnapshot(10, CustomSelection("a"), NOW, NOW))
    manager.save_running(RunningSnapshot(NOW, 10, CustomSelection("a"), NOW))
    loaded = manager.load()
    assert isinstance(loaded, RunningSnapshot)
    assert store.get(PAUSED_KEY) is None
    assert store.get(RUNNING_KEY) is not None


def test_load_returns_none_without_snapshots():
    assert SnapshotManager(MemoryStore()).load() is None


def test_invalid_snapshots_are_discarded():
    bad_payloads = [
        "not json",
        "[]",
        json.dumps({"startedAt": "2024-03-01T10:00:00Z", "selection": {"kind": "custom"}}),
        json.dumps({"startedAt": "yesterday", "accumulatedSeconds": 1, "selection": {"kind": "custom"}}),
        json.dumps({"startedAt": "2024-03-01T10:00:00Z", "accumulatedSeconds": -4, "selection": {"kind": "custom"}}),
        json.dumps({"startedAt": "2024-03-01T10:00:00Z", "accumulatedSeconds": 1, "selection": {"kind": "chapter"}}),
        json.dumps({"startedAt": "2024-03-01T10:00:00Z", "accumulatedSeconds": 1, "selection": {"kind": "nap"}}),
    ]
    for payload in bad_payloads:
        store = MemoryStore({RUNNING_KEY: payload, PAUSED_KEY: payload})
        assert SnapshotManager(store).load() is None, payload
        assert store.keys() == []


def test_store_failures_do_not_raise():
    class BrokenStore(MemoryStore):
        def get(self, key):
            raise OSError("gone")

        def set(self, key, value):
            raise OSError("gone")

        def remove(self, key):
            raise OSError("gone")

    manager = SnapshotManager(BrokenStore())
    manager.save_running(RunningSnapshot(NOW, 0, CustomSelection(), NOW))
    manager.clear_all()
    assert manager.load() is None
