"""Workflow definition source: resolve a definition by id."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from ..core.exceptions import WorkflowInvalidError, WorkflowNotFoundError

if TYPE_CHECKING:
    from ..engine.types import WorkflowDefinition

logger = logging.getLogger(__name__)


class WorkflowSource(Protocol):
    """Anything that can resolve a workflow definition by id."""

    def get(self, workflow_id: str) -> WorkflowDefinition:
        """
        Raises:
            WorkflowNotFoundError: If no workflow has this id
        """
        ...


class WorkflowStore:
    """In-memory workflow catalog."""

    def __init__(self) -> None:
        self._workflows: dict[str, WorkflowDefinition] = {}

    def add(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Add or replace a workflow."""
        self._workflows[definition.id] = definition
        return definition

    def get(self, workflow_id: str) -> WorkflowDefinition:
        definition = self._workflows.get(workflow_id)
        if definition is None:
            raise WorkflowNotFoundError(workflow_id)
        return definition

    def list(self) -> list[WorkflowDefinition]:
        """List all workflows."""
        return list(self._workflows.values())

    def delete(self, workflow_id: str) -> bool:
        """Delete a workflow."""
        return self._workflows.pop(workflow_id, None) is not None

    def load_from_directory(self, directory: str | Path) -> int:
        """
        Load every ``*.json`` workflow in a directory.

        Files that fail to parse are logged and skipped; the count of loaded
        workflows is returned.
        """
        from ..schemas.workflow import parse_workflow_definition

        loaded = 0
        for path in sorted(Path(directory).glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    data.setdefault("id", path.stem)
                definition = parse_workflow_definition(data)
            except (OSError, json.JSONDecodeError, WorkflowInvalidError) as e:
                logger.warning("Skipping workflow file %s: %s", path, e)
                continue
            self.add(definition)
            loaded += 1

        logger.info("Loaded %d workflow(s) from %s", loaded, directory)
        return loaded


# Global instance
workflow_store = WorkflowStore()
