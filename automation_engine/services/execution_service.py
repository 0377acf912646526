"""Execution service for business logic."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..core.exceptions import RunNotFoundError
from ..engine.workflow_runner import RunOptions
from ..schemas.common import WorkflowListItem
from ..schemas.execution import (
    AdHocRunRequest,
    RunListItem,
    RunRecordResponse,
    RunRequest,
    StepResultSchema,
)
from ..schemas.workflow import parse_workflow_definition

if TYPE_CHECKING:
    from ..engine.types import RunRecord, WorkflowDefinition
    from ..engine.workflow_runner import WorkflowRunner
    from ..storage.execution_store import RunRecordStore
    from ..storage.workflow_store import WorkflowStore

logger = logging.getLogger(__name__)


class ExecutionService:
    """Runs workflows and serves the run history."""

    def __init__(
        self,
        workflow_store: WorkflowStore,
        run_store: RunRecordStore,
        runner: WorkflowRunner,
    ) -> None:
        self._workflow_store = workflow_store
        self._run_store = run_store
        self._runner = runner

    def list_workflows(self) -> list[WorkflowListItem]:
        """List stored workflows."""
        return [
            WorkflowListItem(
                id=w.id,
                name=w.name,
                node_count=len(w.nodes),
                edge_count=len(w.edges),
            )
            for w in self._workflow_store.list()
        ]

    async def run_stored(self, workflow_id: str, request: RunRequest) -> RunRecordResponse:
        """
        Run a stored workflow.

        Raises:
            WorkflowNotFoundError: If the workflow doesn't exist
            WorkflowInvalidError: If the workflow fails validation
        """
        definition = self._workflow_store.get(workflow_id)
        return await self._run(definition, request)

    async def run_adhoc(self, request: AdHocRunRequest) -> RunRecordResponse:
        """
        Run a workflow definition sent inline, without storing it.

        Raises:
            WorkflowInvalidError: If the definition fails validation
        """
        definition = parse_workflow_definition(request.workflow)
        return await self._run(definition, request)

    def list_runs(self, workflow_id: str | None = None) -> list[RunListItem]:
        """List run history, newest first."""
        return [
            RunListItem(
                run_id=r.run_id,
                workflow_id=r.workflow_id,
                status=r.status.value,
                started_at=r.started_at.isoformat(),
                finished_at=r.finished_at.isoformat(),
                step_count=len(r.step_results),
                error_count=sum(1 for s in r.step_results if s.error is not None),
            )
            for r in self._run_store.list(workflow_id)
        ]

    def get_run(self, run_id: str) -> RunRecordResponse:
        """
        Get a run record.

        Raises:
            RunNotFoundError: If the run doesn't exist
        """
        record = self._run_store.get(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return self._to_response(record)

    def clear_runs(self) -> int:
        """Clear the run history."""
        return self._run_store.clear()

    async def _run(self, definition: WorkflowDefinition, request: RunRequest) -> RunRecordResponse:
        options = RunOptions(
            concurrency_limit=request.concurrency_limit,
            sink=self._run_store,
        )
        record = await self._runner.run(definition, request.input, options)
        logger.debug("Run %s stored (%s)", record.run_id, record.status.value)
        return self._to_response(record)

    def _to_response(self, record: RunRecord) -> RunRecordResponse:
        return RunRecordResponse(
            run_id=record.run_id,
            workflow_id=record.workflow_id,
            started_at=record.started_at.isoformat(),
            finished_at=record.finished_at.isoformat(),
            status=record.status.value,
            cancelled=record.cancelled,
            step_results=[
                StepResultSchema(
                    node_id=s.node_id,
                    node_type=s.node_type,
                    status=s.status.value,
                    output=s.output,
                    error=s.error,
                    error_type=s.error_type,
                    attempts=s.attempts,
                    duration_ms=s.duration_ms,
                    branch=s.branch,
                    cancelled=s.cancelled,
                )
                for s in record.step_results
            ],
        )
