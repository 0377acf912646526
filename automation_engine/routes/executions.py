"""Execution routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.exceptions import RunNotFoundError
from ..core.dependencies import get_execution_service
from ..services.execution_service import ExecutionService
from ..schemas.execution import RunListItem, RunRecordResponse

router = APIRouter(prefix="/executions")


# Type alias for dependency injection
ExecutionServiceDep = Annotated[ExecutionService, Depends(get_execution_service)]


@router.get("", response_model=list[RunListItem], response_model_by_alias=True)
async def list_executions(
    service: ExecutionServiceDep,
    workflow_id: str | None = Query(None, alias="workflowId", description="Filter by workflow ID"),
) -> list[RunListItem]:
    """List run history."""
    return service.list_runs(workflow_id)


@router.get("/{run_id}", response_model=RunRecordResponse, response_model_by_alias=True)
async def get_execution(
    run_id: str,
    service: ExecutionServiceDep,
) -> RunRecordResponse:
    """Get a run record."""
    try:
        return service.get_run(run_id)
    except RunNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("")
async def clear_executions(service: ExecutionServiceDep) -> dict[str, int]:
    """Clear the run history."""
    return {"cleared": service.clear_runs()}
