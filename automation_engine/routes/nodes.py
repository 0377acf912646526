"""Node type routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ..core.dependencies import get_step_registry
from ..engine.node_registry import StepRegistry
from ..schemas.common import NodeTypeResponse

router = APIRouter(prefix="/nodes")


# Type alias for dependency injection
StepRegistryDep = Annotated[StepRegistry, Depends(get_step_registry)]


@router.get("", response_model=list[NodeTypeResponse])
async def list_nodes(registry: StepRegistryDep) -> list[NodeTypeResponse]:
    """List all registered step types with their parameter schemas."""
    return [
        NodeTypeResponse(
            type=n.type,
            display_name=n.display_name,
            description=n.description,
            group=n.group,
            emits_branches=n.emits_branches,
            outputs=n.outputs,
            properties=n.properties,
        )
        for n in registry.get_node_info_full()
    ]
