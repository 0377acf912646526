"""FastAPI dependency injection for the automation engine."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from fastapi import Depends

from .config import settings

if TYPE_CHECKING:
    from ..engine.node_registry import StepRegistry
    from ..services.execution_service import ExecutionService
    from ..storage.execution_store import RunRecordStore
    from ..storage.workflow_store import WorkflowStore


# --- Store Dependencies ---


def get_workflow_store() -> WorkflowStore:
    """Get the workflow catalog."""
    from ..storage.workflow_store import workflow_store

    return workflow_store


@lru_cache
def get_run_store() -> RunRecordStore:
    """Get the run history store."""
    from ..storage.execution_store import RunRecordStore

    return RunRecordStore(max_records=settings.max_run_records)


@lru_cache
def get_step_registry() -> StepRegistry:
    """Get step registry instance."""
    from ..engine.node_registry import register_builtin_steps, step_registry

    return register_builtin_steps(step_registry)


# --- Service Dependencies ---


def get_execution_service(
    workflow_store=Depends(get_workflow_store),
    run_store=Depends(get_run_store),
    registry=Depends(get_step_registry),
) -> ExecutionService:
    """Get execution service instance."""
    from ..engine.workflow_runner import WorkflowRunner
    from ..services.execution_service import ExecutionService

    return ExecutionService(workflow_store, run_store, WorkflowRunner(registry))
