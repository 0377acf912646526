"""Tests for the workflow catalog and the run history store."""

import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from automation_engine.core.exceptions import WorkflowNotFoundError
from automation_engine.engine import RunRecord, RunStatus
from automation_engine.storage import RunRecordStore, WorkflowStore


def _record(run_id, workflow_id="wf", offset=0):
    started = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=offset)
    return RunRecord(
        run_id=run_id,
        workflow_id=workflow_id,
        started_at=started,
        finished_at=started + timedelta(seconds=1),
        status=RunStatus.SUCCEEDED,
        step_results=(),
    )


class TestWorkflowStore:
    """Tests for WorkflowStore."""

    def test_get_unknown(self):
        with pytest.raises(WorkflowNotFoundError):
            WorkflowStore().get("missing")

    def test_load_from_directory(self, tmp_path):
        (tmp_path / "greet.json").write_text(
            json.dumps(
                {
                    "nodes": [
                        {"id": "start", "type": "manual_trigger"},
                        {"id": "done", "type": "output", "params": {"data": "{{ start.input }}"}},
                    ],
                    "edges": [{"from": "start", "to": "done"}],
                }
            )
        )
        (tmp_path / "broken.json").write_text("{not json")
        (tmp_path / "invalid.json").write_text(json.dumps({"id": "invalid", "nodes": "nope"}))
        (tmp_path / "notes.txt").write_text("ignored")

        store = WorkflowStore()
        loaded = store.load_from_directory(tmp_path)

        assert loaded == 1
        assert [w.id for w in store.list()] == ["greet"]
        assert list(store.get("greet").nodes) == ["start", "done"]

    def test_delete(self, make_workflow):
        store = WorkflowStore()
        store.add(make_workflow([], workflow_id="a"))

        assert store.delete("a") is True
        assert store.delete("a") is False


class TestRunRecordStore:
    """Tests for RunRecordStore."""

    def test_record_and_get(self):
        store = RunRecordStore()
        record = _record("run_1")
        store.record(record)

        assert store.get("run_1") is record
        assert store.get("run_2") is None

    def test_list_newest_first_and_filtered(self):
        store = RunRecordStore()
        store.record(_record("old", offset=0))
        store.record(_record("new", offset=10))
        store.record(_record("other", workflow_id="other", offset=5))

        assert [r.run_id for r in store.list()] == ["new", "other", "old"]
        assert [r.run_id for r in store.list("wf")] == ["new", "old"]

    def test_oldest_records_evicted(self):
        store = RunRecordStore(max_records=2)
        for i in range(3):
            store.record(_record(f"run_{i}", offset=i))

        assert store.get("run_0") is None
        assert {r.run_id for r in store.list()} == {"run_1", "run_2"}

    def test_clear(self):
        store = RunRecordStore()
        store.record(_record("run_1"))

        assert store.clear() == 1
        assert store.list() == []

    def test_concurrent_record_and_list(self):
        store = RunRecordStore(max_records=50)
        errors = []

        def writer(prefix):
            try:
                for i in range(200):
                    store.record(_record(f"{prefix}_{i}", offset=i))
            except Exception as e:
                errors.append(e)

        def reader():
            try:
                for _ in range(200):
                    store.list("wf")
                    store.get("a_0")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(p,)) for p in ("a", "b")]
        threads += [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(store.list()) == 50
