"""Workflow automation engine: run DAGs of steps with branching and retries."""

from .engine import (
    CancellationToken,
    Edge,
    ErrorPolicy,
    NodeSpec,
    RunOptions,
    RunRecord,
    RunStatus,
    WorkflowDefinition,
    WorkflowRunner,
    run_workflow,
)
from .schemas.workflow import parse_workflow_definition

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "Edge",
    "ErrorPolicy",
    "NodeSpec",
    "RunOptions",
    "RunRecord",
    "RunStatus",
    "WorkflowDefinition",
    "WorkflowRunner",
    "run_workflow",
    "parse_workflow_definition",
]
