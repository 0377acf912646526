"""Step registry mapping declared step types to executors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from ..core.exceptions import StepTypeNotFoundError

if TYPE_CHECKING:
    from ..nodes.base import BaseNode


@dataclass
class NodeTypeInfo:
    """Step type information for API responses."""

    type: str
    display_name: str
    description: str
    group: list[str] | None = None
    emits_branches: bool = False
    outputs: list[str] = field(default_factory=lambda: ["main"])
    properties: list[dict[str, Any]] = field(default_factory=list)


class StepRegistry:
    """
    Registry for step executors.

    Executors are stateless and shared by every run. Once frozen the
    registry is read-only, so concurrent runs can share it.
    """

    def __init__(self) -> None:
        self._executors: dict[str, BaseNode] = {}
        self._frozen = False

    def register(self, step_type: str, executor: BaseNode) -> None:
        """Bind an executor to a step type, replacing any previous binding."""
        if self._frozen:
            raise RuntimeError("Step registry is frozen")
        self._executors[step_type] = executor

    def register_node(self, node_class: type[BaseNode]) -> None:
        """Register a node class under its own type if not already registered."""
        instance = node_class()
        if instance.type not in self._executors:
            self.register(instance.type, instance)

    def lookup(self, step_type: str) -> BaseNode:
        """
        Get the executor for a step type.

        Raises:
            StepTypeNotFoundError: If the step type is not registered
        """
        executor = self._executors.get(step_type)
        if executor is None:
            raise StepTypeNotFoundError(step_type)
        return executor

    def has(self, step_type: str) -> bool:
        """Check if step type is registered."""
        return step_type in self._executors

    def list(self) -> list[str]:
        """List all registered step types."""
        return list(self._executors.keys())

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get_node_info_full(self) -> list[NodeTypeInfo]:
        """Describe every registered step type."""
        return [
            self._build_node_type_info(step_type, executor)
            for step_type, executor in self._executors.items()
        ]

    def _build_node_type_info(self, step_type: str, executor: BaseNode) -> NodeTypeInfo:
        desc = executor.node_description
        return NodeTypeInfo(
            type=step_type,
            display_name=desc.display_name if desc else step_type,
            description=executor.description,
            group=desc.group if desc else None,
            emits_branches=executor.emits_branches,
            outputs=list(desc.outputs) if desc else ["main"],
            properties=self._convert_properties(desc.properties) if desc else [],
        )

    def _convert_properties(self, properties: list) -> list[dict[str, Any]]:
        """Convert properties to dict format for API responses."""
        result = []
        for prop in properties:
            prop_dict: dict[str, Any] = {
                "displayName": prop.display_name,
                "name": prop.name,
                "type": prop.type,
                "default": prop.default,
            }
            if prop.required:
                prop_dict["required"] = True
            if prop.description:
                prop_dict["description"] = prop.description
            if prop.options:
                prop_dict["options"] = [
                    {"name": o.name, "value": o.value, "description": o.description}
                    for o in prop.options
                ]
            result.append(prop_dict)
        return result


# Singleton instance
step_registry = StepRegistry()


def register_builtin_steps(registry: StepRegistry | None = None) -> StepRegistry:
    """Register all built-in steps. Safe to call more than once."""
    from ..nodes import (
        # Triggers
        ManualTriggerNode,
        # Flow control
        ConditionNode,
        DelayNode,
        # Actions
        HttpRequestNode,
        TransformNode,
        OutputNode,
    )

    registry = registry if registry is not None else step_registry
    if registry.frozen:
        return registry

    all_node_classes: list[type[BaseNode]] = [
        ManualTriggerNode,
        ConditionNode,
        DelayNode,
        HttpRequestNode,
        TransformNode,
        OutputNode,
    ]

    for node_class in all_node_classes:
        registry.register_node(node_class)
    return registry


def create_default_registry() -> StepRegistry:
    """Fresh registry holding the built-in steps (not frozen)."""
    return register_builtin_steps(StepRegistry())
