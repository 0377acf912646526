"""Workflow sources and run record sinks."""

from .workflow_store import WorkflowSource, WorkflowStore, workflow_store
from .execution_store import RunRecordSink, RunRecordStore

__all__ = [
    "WorkflowSource",
    "WorkflowStore",
    "workflow_store",
    "RunRecordSink",
    "RunRecordStore",
]
