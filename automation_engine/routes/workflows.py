"""Workflow routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from ..core.exceptions import WorkflowInvalidError, WorkflowNotFoundError
from ..core.dependencies import get_execution_service
from ..services.execution_service import ExecutionService
from ..schemas.common import WorkflowListItem
from ..schemas.execution import AdHocRunRequest, RunRecordResponse, RunRequest

router = APIRouter(prefix="/workflows")


# Type alias for dependency injection
ExecutionServiceDep = Annotated[ExecutionService, Depends(get_execution_service)]


def _invalid(e: WorkflowInvalidError) -> HTTPException:
    return HTTPException(status_code=422, detail={"message": e.message, "problems": e.problems})


@router.get("", response_model=list[WorkflowListItem])
async def list_workflows(service: ExecutionServiceDep) -> list[WorkflowListItem]:
    """List stored workflows."""
    return service.list_workflows()


@router.post("/run", response_model=RunRecordResponse, response_model_by_alias=True)
async def run_adhoc_workflow(
    request: AdHocRunRequest,
    service: ExecutionServiceDep,
) -> RunRecordResponse:
    """Run a workflow definition without storing it."""
    try:
        return await service.run_adhoc(request)
    except WorkflowInvalidError as e:
        raise _invalid(e)


@router.post("/{workflow_id}/run", response_model=RunRecordResponse, response_model_by_alias=True)
async def run_workflow(
    workflow_id: str,
    service: ExecutionServiceDep,
    request: RunRequest | None = None,
) -> RunRecordResponse:
    """Run a stored workflow."""
    try:
        return await service.run_stored(workflow_id, request or RunRequest())
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except WorkflowInvalidError as e:
        raise _invalid(e)
