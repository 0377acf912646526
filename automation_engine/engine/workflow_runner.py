"""
Workflow runner - executes DAG-based workflows.

Nodes are dispatched as soon as their dependencies settle, up to an optional
concurrency limit. Conditional steps select a branch tag; edges tagged with
any other branch are dead, and nodes left with only dead incoming edges are
skipped transitively.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal, Mapping

import httpx

from ..core.config import settings
from ..core.exceptions import (
    CancellationError,
    ResolutionError,
    StepExecutionError,
    WorkflowInvalidError,
)
from .cancellation import CancellationToken
from .clock import Clock, system_clock
from .expression_engine import ExpressionEngine, expression_engine
from .node_registry import StepRegistry, register_builtin_steps, step_registry
from .types import (
    Edge,
    ExecutionEvent,
    ExecutionEventCallback,
    ExecutionEventType,
    NodeState,
    RunContext,
    RunRecord,
    RunRecordBuilder,
    RunStatus,
    StepOutput,
    StepResult,
    WorkflowDefinition,
)
from .validation import validate_workflow

if TYPE_CHECKING:
    from ..storage.execution_store import RunRecordSink

logger = logging.getLogger(__name__)

EdgeVerdict = Literal["pending", "satisfied", "dead", "blocked"]


@dataclass
class RunOptions:
    """Per-run knobs. Unset values fall back to the engine settings."""

    concurrency_limit: int | None = None
    clock: Clock | None = None
    cancellation_token: CancellationToken | None = None
    grace_period_ms: int | None = None
    sink: RunRecordSink | None = None
    on_event: ExecutionEventCallback | None = None
    http_client: httpx.AsyncClient | None = None
    # Under "stop", skip only the failed node's downstream and keep dispatching
    # independent branches. By default the first such failure halts new dispatch.
    isolate_failures: bool = False
    run_id: str | None = None


@dataclass
class _NodeOutcome:
    """What a node task reports back to the scheduling loop."""

    node_id: str
    sequence: int
    succeeded: bool
    attempts: int
    duration_ms: float
    output: StepOutput | None = None
    error: str | None = None
    error_type: str | None = None


@dataclass
class _RunState:
    """Mutable bookkeeping for one run. Owned by the scheduling loop."""

    definition: WorkflowDefinition
    order: list[str]
    context: RunContext
    clock: Clock
    builder: RunRecordBuilder
    on_event: ExecutionEventCallback | None
    states: dict[str, NodeState] = field(default_factory=dict)
    branches: dict[str, str | None] = field(default_factory=dict)
    stop_failed: set[str] = field(default_factory=set)
    continued: set[str] = field(default_factory=set)
    attempts: dict[str, int] = field(default_factory=dict)
    started: dict[str, float] = field(default_factory=dict)
    incoming: dict[str, list[Edge]] = field(default_factory=dict)
    sequence: itertools.count = field(default_factory=itertools.count)

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.states.values() if s.is_terminal)


class WorkflowRunner:
    """Executes workflow graphs against a step registry."""

    def __init__(
        self,
        registry: StepRegistry | None = None,
        engine: ExpressionEngine | None = None,
    ) -> None:
        if registry is None:
            registry = register_builtin_steps(step_registry)
        self._registry = registry
        self._engine = engine or expression_engine

    @property
    def registry(self) -> StepRegistry:
        return self._registry

    async def run(
        self,
        definition: WorkflowDefinition | Mapping[str, Any],
        input_data: Mapping[str, Any] | None = None,
        options: RunOptions | None = None,
    ) -> RunRecord:
        """
        Run a workflow to completion.

        Args:
            definition: The workflow definition (or its JSON form)
            input_data: Initial payload, exposed read-only as the global input
            options: Concurrency, clock, cancellation and reporting options

        Returns:
            The sealed RunRecord, after it has been handed to the sink

        Raises:
            WorkflowInvalidError: If the definition fails validation. No node
                has executed in that case.
        """
        definition = self._coerce_definition(definition)
        order = validate_workflow(definition, self._registry)

        if input_data is None:
            input_data = {}
        if not isinstance(input_data, Mapping):
            raise WorkflowInvalidError(["run input must be a JSON object"], definition.id)

        options = options or RunOptions()
        limit = options.concurrency_limit
        if limit is None:
            limit = settings.default_concurrency_limit
        if limit is not None and limit < 1:
            raise ValueError("concurrency_limit must be at least 1")

        clock = options.clock or system_clock
        token = options.cancellation_token or CancellationToken()
        token.bind(asyncio.get_running_loop())
        grace_ms = options.grace_period_ms
        if grace_ms is None:
            grace_ms = settings.cancellation_grace_ms

        run_id = options.run_id or self._generate_id()
        context = RunContext(
            workflow_id=definition.id,
            run_id=run_id,
            clock=clock,
            global_input=input_data,
            expression_engine=self._engine,
        )
        run = _RunState(
            definition=definition,
            order=order,
            context=context,
            clock=clock,
            builder=RunRecordBuilder(run_id, definition.id, clock.now()),
            on_event=options.on_event,
            states={node_id: NodeState.WAITING for node_id in order},
            incoming={node_id: definition.incoming(node_id) for node_id in order},
        )

        logger.info("Run %s of workflow %s started (%d nodes)", run_id, definition.id, len(order))
        self._emit_event(
            run,
            ExecutionEventType.RUN_START,
            progress={"completed": 0, "total": len(order)},
        )

        # Shared HTTP client
        if options.http_client is not None:
            context.http_client = options.http_client
            cancelled = await self._execute(run, limit, token, grace_ms / 1000, options.isolate_failures)
        else:
            async with httpx.AsyncClient(timeout=settings.http_timeout_ms / 1000) as http_client:
                context.http_client = http_client
                cancelled = await self._execute(run, limit, token, grace_ms / 1000, options.isolate_failures)

        status = self._final_status(run, cancelled)
        record = run.builder.seal(status, clock.now(), cancelled=cancelled)

        logger.info("Run %s finished with status %s", run_id, status.value)
        self._emit_event(
            run,
            ExecutionEventType.RUN_COMPLETE,
            data={"status": status.value, "cancelled": cancelled},
            progress={"completed": run.completed_count, "total": len(order)},
        )

        if options.sink is not None:
            try:
                options.sink.record(record)
            except Exception:
                logger.exception("Run record sink failed for run %s", run_id)

        return record

    async def _execute(
        self,
        run: _RunState,
        limit: int | None,
        token: CancellationToken,
        grace_seconds: float,
        isolate_failures: bool,
    ) -> bool:
        """Scheduling loop. Returns True if the run was cancelled."""
        in_flight: dict[asyncio.Task[_NodeOutcome], str] = {}
        cancel_waiter = asyncio.ensure_future(token.wait())
        cancelled = False
        halted = False

        self._refresh_readiness(run)
        try:
            while True:
                if token.cancelled:
                    cancelled = True
                    break

                if not halted:
                    for node_id in run.order:
                        if limit is not None and len(in_flight) >= limit:
                            break
                        if run.states[node_id] == NodeState.READY:
                            in_flight[self._dispatch(run, node_id)] = node_id

                if not in_flight:
                    break

                done, _ = await asyncio.wait(
                    [*in_flight, cancel_waiter],
                    return_when=asyncio.FIRST_COMPLETED,
                )

                finished = [t for t in done if t in in_flight]
                for task in sorted(finished, key=lambda t: t.result().sequence):
                    del in_flight[task]
                    outcome = task.result()
                    self._commit(run, outcome)
                    if not outcome.succeeded and outcome.node_id in run.stop_failed and not isolate_failures:
                        logger.info("Node %s failed, halting dispatch", outcome.node_id)
                        halted = True

                if cancel_waiter in done or token.cancelled:
                    cancelled = True
                    break

                self._refresh_readiness(run)

            if cancelled:
                logger.warning("Run %s cancelled with %d node(s) in flight", run.context.run_id, len(in_flight))
                await self._drain(run, in_flight, grace_seconds)
        finally:
            cancel_waiter.cancel()

        # Nothing left can run: whatever never settled is unreachable
        for node_id in run.order:
            if not run.states[node_id].is_terminal:
                self._skip(run, node_id, "cancelled" if cancelled else "unreachable")

        return cancelled

    def _dispatch(self, run: _RunState, node_id: str) -> asyncio.Task[_NodeOutcome]:
        node = run.definition.nodes[node_id]
        run.states[node_id] = NodeState.EXECUTING
        run.started[node_id] = run.clock.monotonic()
        self._emit_event(
            run,
            ExecutionEventType.NODE_START,
            node_id=node_id,
            node_type=node.type,
            progress={"completed": run.completed_count, "total": len(run.order)},
        )
        return asyncio.create_task(self._run_node(run, node_id), name=f"node:{node_id}")

    async def _run_node(self, run: _RunState, node_id: str) -> _NodeOutcome:
        """
        Resolve parameters and invoke the executor, retrying per policy.

        Node-level failures are converted into an outcome; only task
        cancellation propagates.
        """
        node = run.definition.nodes[node_id]
        executor = self._registry.lookup(node.type)
        policy = node.on_error
        started = run.started[node_id]

        def finish(**kwargs: Any) -> _NodeOutcome:
            return _NodeOutcome(
                node_id=node_id,
                sequence=next(run.sequence),
                attempts=run.attempts.get(node_id, 0),
                duration_ms=round((run.clock.monotonic() - started) * 1000, 3),
                **kwargs,
            )

        try:
            params = self._engine.resolve(node.params, run.context)
        except ResolutionError as e:
            return finish(succeeded=False, error=e.message, error_type=type(e).__name__)

        attempt = 0
        while True:
            attempt += 1
            run.attempts[node_id] = attempt
            retryable = False
            try:
                result = await executor.execute(copy.deepcopy(params), run.context)
            except asyncio.CancelledError:
                raise
            except ResolutionError as e:
                error: Exception = e
            except StepExecutionError as e:
                error = e
                retryable = e.retryable
            except Exception as e:
                logger.exception("Unexpected error in node %s (%s)", node_id, node.type)
                error = StepExecutionError(f"{type(e).__name__}: {e}", retryable=True)
                retryable = True
            else:
                if not isinstance(result, StepOutput):
                    result = StepOutput(value=result)
                return finish(succeeded=True, output=result)

            message = getattr(error, "message", None) or str(error) or type(error).__name__
            if policy.policy == "retry" and retryable and attempt < policy.allowed_attempts:
                delay_ms = policy.delay_ms(attempt)
                logger.warning(
                    "Node %s failed (attempt %d/%d): %s; retrying in %dms",
                    node_id, attempt, policy.allowed_attempts, message, delay_ms,
                )
                self._emit_event(
                    run,
                    ExecutionEventType.NODE_RETRY,
                    node_id=node_id,
                    node_type=node.type,
                    error=message,
                    attempt=attempt,
                )
                await run.clock.sleep(delay_ms / 1000)
                continue

            return finish(succeeded=False, error=message, error_type=type(error).__name__)

    def _commit(self, run: _RunState, outcome: _NodeOutcome) -> None:
        node_id = outcome.node_id
        node = run.definition.nodes[node_id]

        if outcome.succeeded and outcome.output is not None:
            run.context.commit(node_id, outcome.output.value)
            run.states[node_id] = NodeState.COMPLETED
            run.branches[node_id] = outcome.output.branch
            run.builder.add(
                StepResult(
                    node_id=node_id,
                    node_type=node.type,
                    status=NodeState.COMPLETED,
                    output=outcome.output.value,
                    attempts=outcome.attempts,
                    duration_ms=outcome.duration_ms,
                    branch=outcome.output.branch,
                )
            )
            self._emit_event(
                run,
                ExecutionEventType.NODE_COMPLETE,
                node_id=node_id,
                node_type=node.type,
                data=outcome.output.value,
                attempt=outcome.attempts,
                progress={"completed": run.completed_count, "total": len(run.order)},
            )
            return

        run.states[node_id] = NodeState.ERRORED
        if node.on_error.policy == "continue":
            # Dependents proceed and see a null output
            run.context.commit(node_id, None)
            run.continued.add(node_id)
        else:
            run.stop_failed.add(node_id)

        logger.warning(
            "Node %s errored after %d attempt(s): %s", node_id, outcome.attempts, outcome.error
        )
        run.builder.add(
            StepResult(
                node_id=node_id,
                node_type=node.type,
                status=NodeState.ERRORED,
                error=outcome.error,
                error_type=outcome.error_type,
                attempts=outcome.attempts,
                duration_ms=outcome.duration_ms,
            )
        )
        self._emit_event(
            run,
            ExecutionEventType.NODE_ERROR,
            node_id=node_id,
            node_type=node.type,
            error=outcome.error,
            attempt=outcome.attempts,
            progress={"completed": run.completed_count, "total": len(run.order)},
        )

    def _refresh_readiness(self, run: _RunState) -> None:
        """
        Promote waiting nodes to ready, or skip them.

        One pass in topological order settles transitive skips because every
        predecessor is visited first.
        """
        for node_id in run.order:
            if run.states[node_id] != NodeState.WAITING:
                continue

            incoming = run.incoming[node_id]
            if not incoming:
                run.states[node_id] = NodeState.READY
                continue

            verdicts = {self._edge_verdict(run, edge) for edge in incoming}
            if "pending" in verdicts:
                continue
            if "blocked" in verdicts:
                self._skip(run, node_id, "upstream failed")
            elif "satisfied" in verdicts:
                run.states[node_id] = NodeState.READY
            else:
                self._skip(run, node_id, "branch not taken")

    def _edge_verdict(self, run: _RunState, edge: Edge) -> EdgeVerdict:
        source_state = run.states[edge.source]
        if source_state == NodeState.COMPLETED:
            if edge.branch is None or run.branches.get(edge.source) == edge.branch:
                return "satisfied"
            return "dead"
        if source_state == NodeState.ERRORED:
            return "satisfied" if edge.source in run.continued else "blocked"
        if source_state == NodeState.SKIPPED:
            return "dead"
        return "pending"

    def _skip(self, run: _RunState, node_id: str, reason: str) -> None:
        node = run.definition.nodes[node_id]
        run.states[node_id] = NodeState.SKIPPED
        run.builder.add(
            StepResult(node_id=node_id, node_type=node.type, status=NodeState.SKIPPED)
        )
        logger.debug("Node %s skipped: %s", node_id, reason)
        self._emit_event(
            run,
            ExecutionEventType.NODE_SKIPPED,
            node_id=node_id,
            node_type=node.type,
            data={"reason": reason},
        )

    async def _drain(
        self,
        run: _RunState,
        in_flight: dict[asyncio.Task[_NodeOutcome], str],
        grace_seconds: float,
    ) -> None:
        """Give in-flight nodes a grace period, then cancel the stragglers."""
        if not in_flight:
            return

        done, pending = await asyncio.wait(list(in_flight), timeout=grace_seconds)
        for task in sorted(done, key=lambda t: t.result().sequence):
            self._commit(run, task.result())

        stragglers = list(pending)
        for task in stragglers:
            task.cancel()
        results = await asyncio.gather(*stragglers, return_exceptions=True)

        late = [r for r in results if isinstance(r, _NodeOutcome)]
        for outcome in sorted(late, key=lambda o: o.sequence):
            self._commit(run, outcome)

        stopped = {in_flight[t] for t, r in zip(stragglers, results) if not isinstance(r, _NodeOutcome)}
        for node_id in run.order:
            if node_id in stopped:
                self._record_cancelled(run, node_id)

    def _record_cancelled(self, run: _RunState, node_id: str) -> None:
        node = run.definition.nodes[node_id]
        error = CancellationError(f'Node "{node_id}" was cancelled while executing')
        run.states[node_id] = NodeState.ERRORED
        run.stop_failed.add(node_id)
        run.builder.add(
            StepResult(
                node_id=node_id,
                node_type=node.type,
                status=NodeState.ERRORED,
                error=error.message,
                error_type=type(error).__name__,
                attempts=run.attempts.get(node_id, 0),
                duration_ms=round((run.clock.monotonic() - run.started[node_id]) * 1000, 3),
                cancelled=True,
            )
        )
        self._emit_event(
            run,
            ExecutionEventType.NODE_ERROR,
            node_id=node_id,
            node_type=node.type,
            error=error.message,
        )

    def _final_status(self, run: _RunState, cancelled: bool) -> RunStatus:
        if cancelled or run.stop_failed:
            return RunStatus.FAILED
        if run.continued:
            return RunStatus.PARTIAL
        return RunStatus.SUCCEEDED

    def _emit_event(
        self,
        run: _RunState,
        event_type: ExecutionEventType,
        **kwargs: Any,
    ) -> None:
        """Helper to emit events safely."""
        if run.on_event is None:
            return
        try:
            run.on_event(
                ExecutionEvent(
                    type=event_type,
                    run_id=run.context.run_id,
                    timestamp=run.clock.now(),
                    **kwargs,
                )
            )
        except Exception:
            logger.exception("Error in execution event callback")

    def _coerce_definition(
        self, definition: WorkflowDefinition | Mapping[str, Any]
    ) -> WorkflowDefinition:
        if isinstance(definition, WorkflowDefinition):
            return definition
        from ..schemas.workflow import parse_workflow_definition

        return parse_workflow_definition(definition)

    def _generate_id(self) -> str:
        """Generate unique run ID."""
        return f"run_{int(datetime.now().timestamp() * 1000)}_{uuid.uuid4().hex[:7]}"


def run_workflow(
    definition: WorkflowDefinition | Mapping[str, Any],
    input_data: Mapping[str, Any] | None = None,
    options: RunOptions | None = None,
    registry: StepRegistry | None = None,
) -> RunRecord:
    """Blocking entry point: run a workflow on a fresh event loop."""
    runner = WorkflowRunner(registry)
    return asyncio.run(runner.run(definition, input_data, options))
