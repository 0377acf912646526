"""Output node - package the final result of a workflow."""

from __future__ import annotations

from typing import Any, Mapping, TYPE_CHECKING

from .base import BaseNode, NodeTypeDescription, NodeProperty

if TYPE_CHECKING:
    from ..engine.types import RunContext, StepOutput


class OutputNode(BaseNode):
    """Output node - wrap data with optional run metadata and stats."""

    node_description = NodeTypeDescription(
        name="output",
        display_name="Output",
        description="Package the workflow result",
        group=["output"],
        properties=[
            NodeProperty(
                display_name="Data",
                name="data",
                type="json",
                description="The result to publish, e.g. {{ transform.items }}",
            ),
            NodeProperty(
                display_name="Include Metadata",
                name="includeMetadata",
                type="boolean",
                default=False,
            ),
            NodeProperty(
                display_name="Include Stats",
                name="includeStats",
                type="boolean",
                default=False,
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "output"

    @property
    def description(self) -> str:
        return "Package the workflow result"

    async def execute(self, params: Mapping[str, Any], context: RunContext) -> StepOutput:
        data = params.get("data")
        item_count = len(data) if isinstance(data, list) else (0 if data is None else 1)

        result: dict[str, Any] = {
            "success": True,
            "itemCount": item_count,
            "data": data,
        }

        if self.get_parameter(params, "includeMetadata", False):
            result["metadata"] = {
                "workflowId": context.workflow_id,
                "runId": context.run_id,
                "processedAt": context.clock.now().isoformat(),
            }

        if self.get_parameter(params, "includeStats", False):
            result["stats"] = {
                "totalItems": item_count,
                "completedSteps": len(context.snapshot()),
            }

        return self.output(result)
