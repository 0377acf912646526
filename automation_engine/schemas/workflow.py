"""Workflow-related Pydantic schemas (the JSON boundary)."""

from __future__ import annotations

from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.config import settings
from ..core.exceptions import WorkflowInvalidError
from ..engine.types import Edge, ErrorPolicy, NodeSpec, WorkflowDefinition


class ErrorPolicySchema(BaseModel):
    """Object form of a node's onError policy."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    policy: Literal["stop", "continue", "retry"] = Field("stop", description="Failure policy")
    max_attempts: int | None = Field(None, alias="maxAttempts", ge=1, description="Total attempts for retry")
    backoff_ms: int | None = Field(None, alias="backoffMs", ge=0, description="Base delay between attempts in ms")
    backoff: Literal["linear", "fixed", "exponential"] | None = Field(
        None, description="Backoff curve; defaults to the engine setting"
    )

    def to_policy(self) -> ErrorPolicy:
        if self.policy != "retry":
            return ErrorPolicy(policy=self.policy)
        return ErrorPolicy.retry(
            max_attempts=self.max_attempts or settings.default_retry_attempts,
            backoff_ms=(
                self.backoff_ms if self.backoff_ms is not None else settings.default_retry_delay_ms
            ),
            backoff=self.backoff or settings.default_backoff,
        )


class NodeSpecSchema(BaseModel):
    """Schema for one node in a workflow."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "fetch",
                "type": "http.request",
                "params": {"url": "https://api.example.com/users/{{ $input.userId }}"},
                "onError": {"policy": "retry", "maxAttempts": 3, "backoffMs": 500},
            }
        },
    )

    id: str | None = Field(None, min_length=1, description="Unique node id (optional in mapping form)")
    type: str = Field(..., min_length=1, description="Step type identifier")
    params: dict[str, Any] = Field(default_factory=dict, description="Step parameters, may contain {{ }} templates")
    on_error: Literal["stop", "continue", "retry"] | ErrorPolicySchema = Field(
        "stop", alias="onError", description="Failure policy"
    )

    def to_policy(self) -> ErrorPolicy:
        if isinstance(self.on_error, ErrorPolicySchema):
            return self.on_error.to_policy()
        return ErrorPolicySchema(policy=self.on_error).to_policy()


class EdgeSchema(BaseModel):
    """Schema for an edge between nodes."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from", description="Source node id")
    target: str = Field(..., alias="to", description="Target node id")
    branch: str | None = Field(None, description="Branch tag selected by a condition step")


class WorkflowDefinitionSchema(BaseModel):
    """Schema for a complete workflow definition."""

    id: str = Field(..., min_length=1, description="Workflow id")
    name: str | None = Field(None, max_length=255, description="Workflow name")
    description: str | None = Field(None, description="Workflow description")
    nodes: list[NodeSpecSchema] | dict[str, NodeSpecSchema] = Field(
        ..., description="Nodes as a list or as a mapping of id to node"
    )
    edges: list[EdgeSchema] = Field(default_factory=list, description="Directed edges")

    @field_validator("nodes")
    @classmethod
    def _check_node_ids(
        cls, nodes: list[NodeSpecSchema] | dict[str, NodeSpecSchema]
    ) -> list[NodeSpecSchema] | dict[str, NodeSpecSchema]:
        if isinstance(nodes, dict):
            for key, node in nodes.items():
                if node.id is not None and node.id != key:
                    raise ValueError(f'node key "{key}" does not match its id "{node.id}"')
            return nodes

        seen: set[str] = set()
        for node in nodes:
            if node.id is None:
                raise ValueError("nodes in list form need an id")
            if node.id in seen:
                raise ValueError(f'duplicate node id "{node.id}"')
            seen.add(node.id)
        return nodes

    def to_definition(self) -> WorkflowDefinition:
        if isinstance(self.nodes, dict):
            items = list(self.nodes.items())
        else:
            items = [(node.id, node) for node in self.nodes]

        nodes = {
            node_id: NodeSpec(
                id=node_id,
                type=node.type,
                params=node.params,
                on_error=node.to_policy(),
            )
            for node_id, node in items
        }
        edges = tuple(Edge(source=e.source, target=e.target, branch=e.branch) for e in self.edges)
        return WorkflowDefinition(id=self.id, nodes=nodes, edges=edges, name=self.name)


def parse_workflow_definition(data: Mapping[str, Any]) -> WorkflowDefinition:
    """
    Validate a JSON workflow document and build the in-memory definition.

    Raises:
        WorkflowInvalidError: If the document does not match the schema
    """
    try:
        schema = WorkflowDefinitionSchema.model_validate(data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'workflow'}: {err['msg']}"
            for err in e.errors()
        ]
        workflow_id = data.get("id") if isinstance(data, Mapping) else None
        raise WorkflowInvalidError(problems, workflow_id) from e
    return schema.to_definition()


def definition_to_dict(definition: WorkflowDefinition) -> dict[str, Any]:
    """JSON form of a definition (list-form nodes)."""
    nodes = []
    for node in definition.nodes.values():
        policy = node.on_error
        on_error: str | dict[str, Any] = policy.policy
        if policy.policy == "retry":
            on_error = {
                "policy": "retry",
                "maxAttempts": policy.max_attempts,
                "backoffMs": policy.backoff_ms,
                "backoff": policy.backoff,
            }
        nodes.append({"id": node.id, "type": node.type, "params": dict(node.params), "onError": on_error})

    edges = []
    for edge in definition.edges:
        entry: dict[str, Any] = {"from": edge.source, "to": edge.target}
        if edge.branch is not None:
            entry["branch"] = edge.branch
        edges.append(entry)

    result: dict[str, Any] = {"id": definition.id, "nodes": nodes, "edges": edges}
    if definition.name:
        result["name"] = definition.name
    return result
