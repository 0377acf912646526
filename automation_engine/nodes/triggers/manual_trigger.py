"""Manual trigger - entry point that exposes the run's input."""

from __future__ import annotations

from typing import Any, Mapping, TYPE_CHECKING

from ..base import BaseNode, NodeTypeDescription

if TYPE_CHECKING:
    from ...engine.types import RunContext, StepOutput


class ManualTriggerNode(BaseNode):
    """Manual trigger - starts a workflow with the caller-supplied input."""

    node_description = NodeTypeDescription(
        name="manual_trigger",
        display_name="Manual Trigger",
        description="Start the workflow manually with the run input",
        group=["trigger"],
    )

    @property
    def type(self) -> str:
        return "manual_trigger"

    @property
    def description(self) -> str:
        return "Start the workflow manually with the run input"

    async def execute(self, params: Mapping[str, Any], context: RunContext) -> StepOutput:
        return self.output({
            "triggeredAt": context.clock.now().isoformat(),
            "runId": context.run_id,
            "input": dict(context.global_input),
        })
