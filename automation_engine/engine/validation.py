"""Load-time validation of workflow definitions."""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING

from ..core.exceptions import WorkflowInvalidError

if TYPE_CHECKING:
    from .node_registry import StepRegistry
    from .types import WorkflowDefinition

logger = logging.getLogger(__name__)


def validate_workflow(definition: WorkflowDefinition, registry: StepRegistry) -> list[str]:
    """
    Check a definition before anything executes.

    Returns the node ids in topological order (ties broken by declaration
    order).

    Raises:
        WorkflowInvalidError: Listing every problem found
    """
    problems: list[str] = []

    if not definition.nodes:
        raise WorkflowInvalidError(["workflow has no nodes"], definition.id)

    for node_id, node in definition.nodes.items():
        if node.id != node_id:
            problems.append(f'node key "{node_id}" does not match node id "{node.id}"')
        if not registry.has(node.type):
            problems.append(f'node "{node_id}" has unknown step type "{node.type}"')
        for problem in node.on_error.problems():
            problems.append(f'node "{node_id}": {problem}')

    seen_edges: set[tuple[str, str, str | None]] = set()
    for edge in definition.edges:
        label = f"{edge.source} -> {edge.target}"
        missing = [n for n in (edge.source, edge.target) if n not in definition.nodes]
        for node_id in missing:
            problems.append(f'edge {label} references unknown node "{node_id}"')
        if edge.source == edge.target:
            problems.append(f"edge {label} is a self-loop")
        key = (edge.source, edge.target, edge.branch)
        if key in seen_edges:
            problems.append(f"edge {label} is declared more than once")
        seen_edges.add(key)

        if edge.branch is not None and not missing:
            source_type = definition.nodes[edge.source].type
            if registry.has(source_type) and not registry.lookup(source_type).emits_branches:
                problems.append(
                    f'edge {label} has branch "{edge.branch}" but step type '
                    f'"{source_type}" does not select branches'
                )

    entries = definition.entry_nodes
    if len(entries) != 1:
        problems.append(
            f"workflow must have exactly one entry node, found {len(entries)}"
            + (f" ({', '.join(entries)})" if entries else "")
        )

    order = _topological_order(definition)
    if len(order) != len(definition.nodes):
        cyclic = [n for n in definition.nodes if n not in order]
        problems.append(f"workflow contains a cycle through: {', '.join(cyclic)}")

    if problems:
        logger.debug("Workflow %s rejected: %s", definition.id, problems)
        raise WorkflowInvalidError(problems, definition.id)

    return order


def _topological_order(definition: WorkflowDefinition) -> list[str]:
    """Kahn's algorithm over the valid edges. Nodes on a cycle are left out."""
    position = {node_id: i for i, node_id in enumerate(definition.nodes)}
    in_degree = {node_id: 0 for node_id in definition.nodes}
    downstream: dict[str, list[str]] = {node_id: [] for node_id in definition.nodes}

    for edge in definition.edges:
        if edge.source in position and edge.target in position:
            in_degree[edge.target] += 1
            downstream[edge.source].append(edge.target)

    ready = deque(node_id for node_id in definition.nodes if in_degree[node_id] == 0)
    order: list[str] = []
    while ready:
        node_id = ready.popleft()
        order.append(node_id)
        released = []
        for target in downstream[node_id]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                released.append(target)
        ready.extend(sorted(released, key=position.__getitem__))
    return order
