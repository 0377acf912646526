"""Run record sink and in-memory run history."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..engine.types import RunRecord


class RunRecordSink(Protocol):
    """Receives each sealed run record exactly once."""

    def record(self, run_record: RunRecord) -> None:
        ...


class RunRecordStore:
    """Bounded in-memory run history. Oldest records are evicted first."""

    def __init__(self, max_records: int = 100) -> None:
        self._records: dict[str, RunRecord] = {}
        self._max_records = max_records
        self._lock = threading.Lock()

    def record(self, run_record: RunRecord) -> None:
        with self._lock:
            self._records[run_record.run_id] = run_record
            self._cleanup()

    def get(self, run_id: str) -> RunRecord | None:
        """Get a run record by ID."""
        with self._lock:
            return self._records.get(run_id)

    def list(self, workflow_id: str | None = None) -> list[RunRecord]:
        """List run records, newest first, optionally filtered by workflow ID."""
        with self._lock:
            records = list(self._records.values())

        if workflow_id:
            records = [r for r in records if r.workflow_id == workflow_id]

        return sorted(records, key=lambda r: r.started_at, reverse=True)

    def clear(self) -> int:
        """Clear all run records and return count."""
        with self._lock:
            count = len(self._records)
            self._records.clear()
        return count

    def _cleanup(self) -> None:
        """Remove oldest records if over limit."""
        while len(self._records) > self._max_records:
            oldest = min(self._records.values(), key=lambda r: r.started_at)
            del self._records[oldest.run_id]
