"""Execution-related Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RunRequest(BaseModel):
    """Request body for running a stored workflow."""

    model_config = ConfigDict(populate_by_name=True)

    input: dict[str, Any] = Field(default_factory=dict, description="Initial input payload")
    concurrency_limit: int | None = Field(
        None, alias="concurrencyLimit", ge=1, description="Maximum nodes executing at once"
    )


class AdHocRunRequest(RunRequest):
    """Request body for running a workflow definition sent inline."""

    workflow: dict[str, Any] = Field(..., description="Workflow definition JSON")


class StepResultSchema(BaseModel):
    """Schema for one step result."""

    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(..., alias="nodeId")
    node_type: str = Field(..., alias="nodeType")
    status: str
    output: Any = None
    error: str | None = None
    error_type: str | None = Field(None, alias="errorType")
    attempts: int
    duration_ms: float = Field(..., alias="durationMs")
    branch: str | None = None
    cancelled: bool = False


class RunRecordResponse(BaseModel):
    """Full run record."""

    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(..., alias="runId")
    workflow_id: str = Field(..., alias="workflowId")
    started_at: str = Field(..., alias="startedAt")
    finished_at: str = Field(..., alias="finishedAt")
    status: str
    cancelled: bool = False
    step_results: list[StepResultSchema] = Field(default_factory=list, alias="stepResults")


class RunListItem(BaseModel):
    """Schema for a run in list responses."""

    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(..., alias="runId")
    workflow_id: str = Field(..., alias="workflowId")
    status: str
    started_at: str = Field(..., alias="startedAt")
    finished_at: str = Field(..., alias="finishedAt")
    step_count: int = Field(..., alias="stepCount")
    error_count: int = Field(..., alias="errorCount")
