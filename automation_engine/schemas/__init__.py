"""Pydantic schemas for the JSON boundary and the API."""

from .workflow import (
    ErrorPolicySchema,
    NodeSpecSchema,
    EdgeSchema,
    WorkflowDefinitionSchema,
    parse_workflow_definition,
    definition_to_dict,
)
from .execution import (
    RunRequest,
    AdHocRunRequest,
    StepResultSchema,
    RunRecordResponse,
    RunListItem,
)
from .common import (
    HealthResponse,
    RootResponse,
    WorkflowListItem,
    NodeTypeResponse,
)

__all__ = [
    # Workflow
    "ErrorPolicySchema",
    "NodeSpecSchema",
    "EdgeSchema",
    "WorkflowDefinitionSchema",
    "parse_workflow_definition",
    "definition_to_dict",
    # Execution
    "RunRequest",
    "AdHocRunRequest",
    "StepResultSchema",
    "RunRecordResponse",
    "RunListItem",
    # Common
    "HealthResponse",
    "RootResponse",
    "WorkflowListItem",
    "NodeTypeResponse",
]
