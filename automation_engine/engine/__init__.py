"""Core workflow engine components."""

from .types import (
    NodeState,
    RunStatus,
    ErrorPolicy,
    NodeSpec,
    Edge,
    WorkflowDefinition,
    StepOutput,
    RunContext,
    StepResult,
    RunRecord,
    ExecutionEvent,
    ExecutionEventType,
)
from .clock import Clock, SystemClock, VirtualClock, system_clock
from .cancellation import CancellationToken
from .expression_engine import ExpressionEngine, expression_engine
from .node_registry import (
    StepRegistry,
    step_registry,
    register_builtin_steps,
    create_default_registry,
)
from .validation import validate_workflow
from .workflow_runner import WorkflowRunner, RunOptions, run_workflow

__all__ = [
    "NodeState",
    "RunStatus",
    "ErrorPolicy",
    "NodeSpec",
    "Edge",
    "WorkflowDefinition",
    "StepOutput",
    "RunContext",
    "StepResult",
    "RunRecord",
    "ExecutionEvent",
    "ExecutionEventType",
    "Clock",
    "SystemClock",
    "VirtualClock",
    "system_clock",
    "CancellationToken",
    "ExpressionEngine",
    "expression_engine",
    "StepRegistry",
    "step_registry",
    "register_builtin_steps",
    "create_default_registry",
    "validate_workflow",
    "WorkflowRunner",
    "RunOptions",
    "run_workflow",
]
