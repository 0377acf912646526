"""Common schemas used across the API."""

from typing import Any

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str


class RootResponse(BaseModel):
    """Root endpoint response."""

    name: str
    version: str
    status: str


class WorkflowListItem(BaseModel):
    """Schema for a stored workflow in list responses."""

    id: str
    name: str | None = None
    node_count: int
    edge_count: int


class NodeTypeResponse(BaseModel):
    """Schema for a registered step type."""

    type: str
    display_name: str
    description: str
    group: list[str] | None = None
    emits_branches: bool = False
    outputs: list[str]
    properties: list[dict[str, Any]]
