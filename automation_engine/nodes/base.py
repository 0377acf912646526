"""Base class for all step executors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, TYPE_CHECKING

from ..core.exceptions import StepExecutionError

if TYPE_CHECKING:
    from ..engine.types import RunContext, StepOutput


@dataclass
class NodePropertyOption:
    """Option for a node property."""

    name: str
    value: str
    description: str | None = None


@dataclass
class NodeProperty:
    """Parameter accepted by a step type."""

    display_name: str
    name: str
    type: str  # string, number, boolean, options, json
    default: Any = None
    required: bool = False
    description: str | None = None
    options: list[NodePropertyOption] | None = None


@dataclass
class NodeTypeDescription:
    """Full description of a step type, as listed by the API."""

    name: str
    display_name: str
    description: str
    group: list[str] = field(default_factory=lambda: ["transform"])
    outputs: list[str] = field(default_factory=lambda: ["main"])
    properties: list[NodeProperty] = field(default_factory=list)


class BaseNode(ABC):
    """
    Abstract base class for all step executors.

    Executors receive parameters that have already been resolved against the
    run context. They must not mutate the context; the runner commits the
    returned output.
    """

    node_description: NodeTypeDescription | None = None

    # Set on conditional steps whose outgoing edges carry branch tags
    emits_branches: bool = False

    @property
    @abstractmethod
    def type(self) -> str:
        """Step type identifier (registry key)."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Short description of what the step does."""
        ...

    @abstractmethod
    async def execute(self, params: Mapping[str, Any], context: RunContext) -> StepOutput:
        """
        Run the step.

        Raises:
            StepExecutionError: On failure, classified retryable or not
        """
        ...

    def get_parameter(
        self,
        params: Mapping[str, Any],
        key: str,
        default: Any = None,
    ) -> Any:
        """Get a parameter value, enforcing required properties."""
        value = params.get(key)
        if value is None:
            if default is None and self._is_required_parameter(key):
                raise StepExecutionError(
                    f'Missing required parameter "{key}" for step type "{self.type}"'
                )
            return default
        return value

    def _is_required_parameter(self, key: str) -> bool:
        """Check if a parameter is required."""
        if not self.node_description:
            return False
        for prop in self.node_description.properties:
            if prop.name == key:
                return prop.required
        return False

    def output(self, value: Any) -> StepOutput:
        """Helper to create an unbranched result."""
        from ..engine.types import StepOutput

        return StepOutput(value=value)

    def branch(self, tag: str, value: Any) -> StepOutput:
        """Helper to create a result that selects an outgoing branch."""
        from ..engine.types import StepOutput

        return StepOutput(value=value, branch=tag)
