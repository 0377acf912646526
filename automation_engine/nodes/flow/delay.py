"""Delay node - pause for a bounded duration."""

from __future__ import annotations

from typing import Any, Mapping, TYPE_CHECKING

from ..base import (
    BaseNode,
    NodeTypeDescription,
    NodeProperty,
    NodePropertyOption,
)
from ...core.config import settings
from ...core.exceptions import StepExecutionError

if TYPE_CHECKING:
    from ...engine.types import RunContext, StepOutput

UNIT_MS = {"milliseconds": 1, "seconds": 1000, "minutes": 60_000, "hours": 3_600_000}


class DelayNode(BaseNode):
    """Delay node - sleep on the run's clock, then pass a value through."""

    node_description = NodeTypeDescription(
        name="delay",
        display_name="Delay",
        description="Pause execution for a specified duration",
        group=["flow"],
        properties=[
            NodeProperty(
                display_name="Duration (ms)",
                name="durationMs",
                type="number",
                description="How long to wait, in milliseconds. Takes precedence over duration/unit.",
            ),
            NodeProperty(
                display_name="Duration",
                name="duration",
                type="number",
                default=1,
                description="How long to wait, in the selected unit",
            ),
            NodeProperty(
                display_name="Wait Unit",
                name="unit",
                type="options",
                default="seconds",
                options=[
                    NodePropertyOption(name="Milliseconds", value="milliseconds"),
                    NodePropertyOption(name="Seconds", value="seconds"),
                    NodePropertyOption(name="Minutes", value="minutes"),
                    NodePropertyOption(name="Hours", value="hours"),
                ],
            ),
            NodeProperty(
                display_name="Value",
                name="value",
                type="json",
                description="Returned unchanged after the delay",
            ),
        ],
    )

    def __init__(self, max_delay_ms: int | None = None) -> None:
        self._max_delay_ms = max_delay_ms if max_delay_ms is not None else settings.max_delay_ms

    @property
    def type(self) -> str:
        return "delay"

    @property
    def description(self) -> str:
        return "Pause execution for a specified duration"

    async def execute(self, params: Mapping[str, Any], context: RunContext) -> StepOutput:
        delay_ms = self._duration_ms(params)

        # Capped for safety
        delay_ms = min(delay_ms, self._max_delay_ms)

        await context.clock.sleep(delay_ms / 1000)

        return self.output({"waitedMs": delay_ms, "value": params.get("value")})

    def _duration_ms(self, params: Mapping[str, Any]) -> float:
        raw = params.get("durationMs")
        if raw is None:
            unit = self.get_parameter(params, "unit", "seconds")
            if unit not in UNIT_MS:
                raise StepExecutionError(f'Unknown delay unit "{unit}"')
            raw = self.get_parameter(params, "duration", 1)
            multiplier = UNIT_MS[unit]
        else:
            multiplier = 1

        try:
            duration = float(raw) * multiplier
        except (TypeError, ValueError):
            raise StepExecutionError(f"Delay duration must be a number, got {raw!r}")
        if duration < 0:
            raise StepExecutionError("Delay duration cannot be negative")
        return duration
