"""Core type definitions for the automation engine."""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Literal, Mapping

if TYPE_CHECKING:
    from .clock import Clock
    from .expression_engine import ExpressionEngine


BackoffStrategy = Literal["linear", "fixed", "exponential"]
PolicyKind = Literal["stop", "continue", "retry"]


class NodeState(str, Enum):
    """Lifecycle of a single node within a run."""

    WAITING = "waiting"
    READY = "ready"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ERRORED = "errored"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (NodeState.COMPLETED, NodeState.ERRORED, NodeState.SKIPPED)


class RunStatus(str, Enum):
    """Terminal status of a sealed run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PARTIAL = "partial"


# --- Workflow Schema Types ---


@dataclass(frozen=True)
class ErrorPolicy:
    """
    What the runner does when a node's executor fails.

    ``max_attempts`` counts every invocation, including the first one, so
    ``retry(3, 10)`` means one call plus at most two retries.
    """

    policy: PolicyKind = "stop"
    max_attempts: int = 1
    backoff_ms: int = 0
    backoff: BackoffStrategy = "linear"

    @classmethod
    def stop(cls) -> ErrorPolicy:
        return cls(policy="stop")

    @classmethod
    def proceed(cls) -> ErrorPolicy:
        """The ``continue`` policy (``continue`` is a keyword)."""
        return cls(policy="continue")

    @classmethod
    def retry(
        cls,
        max_attempts: int,
        backoff_ms: int = 0,
        backoff: BackoffStrategy = "linear",
    ) -> ErrorPolicy:
        return cls(
            policy="retry",
            max_attempts=max_attempts,
            backoff_ms=backoff_ms,
            backoff=backoff,
        )

    @property
    def allowed_attempts(self) -> int:
        return self.max_attempts if self.policy == "retry" else 1

    def delay_ms(self, retry_number: int) -> int:
        """Backoff before the ``retry_number``-th retry (1-based)."""
        if self.backoff == "fixed":
            return self.backoff_ms
        if self.backoff == "exponential":
            return self.backoff_ms * 2 ** (retry_number - 1)
        return self.backoff_ms * retry_number

    def problems(self) -> list[str]:
        """Return a list of reasons this policy is malformed (empty if valid)."""
        found: list[str] = []
        if self.policy not in ("stop", "continue", "retry"):
            found.append(f'unknown onError policy "{self.policy}"')
        if self.backoff not in ("linear", "fixed", "exponential"):
            found.append(f'unknown backoff strategy "{self.backoff}"')
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            found.append("maxAttempts must be a positive integer")
        if not isinstance(self.backoff_ms, int) or self.backoff_ms < 0:
            found.append("backoffMs must be a non-negative integer")
        return found


@dataclass(frozen=True)
class NodeSpec:
    """Declaration of one step in a workflow."""

    id: str
    type: str
    params: Mapping[str, Any] = field(default_factory=dict)
    on_error: ErrorPolicy = field(default_factory=ErrorPolicy)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(copy.deepcopy(dict(self.params))))


@dataclass(frozen=True)
class Edge:
    """Directed dependency between two nodes, optionally tagged with a branch."""

    source: str
    target: str
    branch: str | None = None


@dataclass(frozen=True)
class WorkflowDefinition:
    """Workflow graph. Immutable once loaded."""

    id: str
    nodes: Mapping[str, NodeSpec]
    edges: tuple[Edge, ...] = ()
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", MappingProxyType(dict(self.nodes)))
        object.__setattr__(self, "edges", tuple(self.edges))

    def incoming(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.target == node_id]

    def outgoing(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.source == node_id]

    @property
    def entry_nodes(self) -> list[str]:
        """Node ids with no incoming edges, in declaration order."""
        targets = {e.target for e in self.edges}
        return [node_id for node_id in self.nodes if node_id not in targets]


# --- Execution Types ---


@dataclass(frozen=True)
class StepOutput:
    """Value produced by an executor, plus the branch tag for conditionals."""

    value: Any = None
    branch: str | None = None


@dataclass
class RunContext:
    """
    Per-run data store threaded through execution.

    ``variables`` is append-only: a node id is written at most once.
    """

    workflow_id: str
    run_id: str
    clock: Clock
    global_input: Mapping[str, Any] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)

    # Shared HTTP client for http.request steps
    http_client: Any | None = None  # httpx.AsyncClient

    # Engine used by nodes that evaluate expressions themselves
    expression_engine: ExpressionEngine | None = None

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.global_input = MappingProxyType(copy.deepcopy(dict(self.global_input)))

    def commit(self, node_id: str, value: Any) -> None:
        """Write a node's output. Raises if the node already has one."""
        with self._lock:
            if node_id in self.variables:
                raise ValueError(f'Output for node "{node_id}" is already committed')
            self.variables[node_id] = value

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of the committed outputs, in completion order."""
        with self._lock:
            return dict(self.variables)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one node, as it appears in the run record."""

    node_id: str
    node_type: str
    status: NodeState
    output: Any = None
    error: str | None = None
    error_type: str | None = None
    attempts: int = 0
    duration_ms: float = 0.0
    branch: str | None = None
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "nodeId": self.node_id,
            "nodeType": self.node_type,
            "status": self.status.value,
            "attempts": self.attempts,
            "durationMs": self.duration_ms,
        }
        if self.status == NodeState.ERRORED:
            data["error"] = self.error
            data["errorType"] = self.error_type
        else:
            data["output"] = self.output
        if self.branch is not None:
            data["branch"] = self.branch
        if self.cancelled:
            data["cancelled"] = True
        return data


@dataclass(frozen=True)
class RunRecord:
    """Terminal, immutable snapshot of one run."""

    run_id: str
    workflow_id: str
    started_at: datetime
    finished_at: datetime
    status: RunStatus
    step_results: tuple[StepResult, ...]
    cancelled: bool = False

    @property
    def duration_ms(self) -> float:
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def result_for(self, node_id: str) -> StepResult | None:
        return next((r for r in self.step_results if r.node_id == node_id), None)

    @property
    def executed_node_ids(self) -> list[str]:
        return [r.node_id for r in self.step_results if r.status != NodeState.SKIPPED]

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "workflowId": self.workflow_id,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "status": self.status.value,
            "cancelled": self.cancelled,
            "stepResults": [r.to_dict() for r in self.step_results],
        }


class RunRecordBuilder:
    """Accumulates step results as they complete and seals them exactly once."""

    def __init__(self, run_id: str, workflow_id: str, started_at: datetime) -> None:
        self.run_id = run_id
        self.workflow_id = workflow_id
        self.started_at = started_at
        self._results: list[StepResult] = []
        self._sealed = False

    @property
    def results(self) -> list[StepResult]:
        return list(self._results)

    def add(self, result: StepResult) -> None:
        if self._sealed:
            raise RuntimeError("Run record is already sealed")
        self._results.append(result)

    def seal(self, status: RunStatus, finished_at: datetime, cancelled: bool = False) -> RunRecord:
        if self._sealed:
            raise RuntimeError("Run record is already sealed")
        self._sealed = True
        return RunRecord(
            run_id=self.run_id,
            workflow_id=self.workflow_id,
            started_at=self.started_at,
            finished_at=finished_at,
            status=status,
            step_results=tuple(self._results),
            cancelled=cancelled,
        )


# --- Events ---


class ExecutionEventType(str, Enum):
    """Types of execution events emitted while a run progresses."""

    RUN_START = "run:start"
    NODE_START = "node:start"
    NODE_RETRY = "node:retry"
    NODE_COMPLETE = "node:complete"
    NODE_ERROR = "node:error"
    NODE_SKIPPED = "node:skipped"
    RUN_COMPLETE = "run:complete"


@dataclass
class ExecutionEvent:
    """Real-time execution event."""

    type: ExecutionEventType
    run_id: str
    timestamp: datetime
    node_id: str | None = None
    node_type: str | None = None
    data: Any = None
    error: str | None = None
    attempt: int | None = None
    progress: dict[str, int] | None = None


# Callback type for receiving execution events
ExecutionEventCallback = Callable[[ExecutionEvent], None]
