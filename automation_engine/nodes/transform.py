"""Transform node - declarative reshaping of data, no I/O."""

from __future__ import annotations

import copy
from typing import Any, Mapping, TYPE_CHECKING

from .base import (
    BaseNode,
    NodeTypeDescription,
    NodeProperty,
    NodePropertyOption,
)
from .flow.condition import compare
from ..core.exceptions import StepExecutionError

if TYPE_CHECKING:
    from ..engine.types import RunContext, StepOutput

ITEM_PREFIX = "$item."


class TransformNode(BaseNode):
    """
    Transform node - build an output object from resolved parameters.

    Steps are applied in order: ``base`` is copied, ``items`` are mapped or
    filtered, then ``fields`` are set, ``rename`` and ``remove`` applied, and
    finally ``append`` pushes values onto list fields.
    """

    node_description = NodeTypeDescription(
        name="transform",
        display_name="Transform",
        description="Map input fields to output fields",
        group=["transform"],
        properties=[
            NodeProperty(
                display_name="Base",
                name="base",
                type="json",
                description="Object to start from, e.g. {{ fetch.body }}",
            ),
            NodeProperty(
                display_name="Fields to Set",
                name="fields",
                type="json",
                default={},
                description="Mapping of output paths (dot notation) to values",
            ),
            NodeProperty(
                display_name="Fields to Rename",
                name="rename",
                type="json",
                default={},
                description="Mapping of old path to new path",
            ),
            NodeProperty(
                display_name="Fields to Remove",
                name="remove",
                type="json",
                default=[],
            ),
            NodeProperty(
                display_name="Append",
                name="append",
                type="json",
                default={},
                description="Mapping of list field to a value appended to it",
            ),
            NodeProperty(
                display_name="Items",
                name="items",
                type="json",
                description="List of items to map or filter",
            ),
            NodeProperty(
                display_name="Operation",
                name="operation",
                type="options",
                default="map",
                options=[
                    NodePropertyOption(name="Map", value="map", description="Reshape each item"),
                    NodePropertyOption(name="Filter", value="filter", description="Keep matching items"),
                ],
            ),
            NodeProperty(
                display_name="Item Mapping",
                name="mapping",
                type="json",
                description='Per-item mapping; "$item.path" copies a field from the item',
            ),
            NodeProperty(
                display_name="Where",
                name="where",
                type="json",
                description="Filter condition {field, operator, value}",
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "transform"

    @property
    def description(self) -> str:
        return "Map input fields to output fields"

    async def execute(self, params: Mapping[str, Any], context: RunContext) -> StepOutput:
        base = copy.deepcopy(params.get("base", {}))
        if base is None:
            base = {}

        has_object_ops = any(key in params for key in ("fields", "rename", "remove", "append", "items"))
        if not isinstance(base, dict):
            if has_object_ops:
                raise StepExecutionError(
                    f"Transform base must be an object, got {type(base).__name__}"
                )
            return self.output(base)

        result: dict[str, Any] = base

        if "items" in params:
            items = params["items"]
            if not isinstance(items, list):
                raise StepExecutionError(f"Transform items must be a list, got {type(items).__name__}")
            operation = self.get_parameter(params, "operation", "map")
            if operation == "filter":
                processed = self._filter(items, self.get_parameter(params, "where", {}))
            elif operation == "map":
                processed = self._map(items, params.get("mapping"), context)
            else:
                raise StepExecutionError(f'Unknown transform operation "{operation}"')
            result["items"] = processed
            result["itemCount"] = len(processed)

        fields = self.get_parameter(params, "fields", {})
        for path, value in self._as_mapping(fields, "fields").items():
            self._set_nested_value(result, path, value)

        renames = self.get_parameter(params, "rename", {})
        for from_path, to_path in self._as_mapping(renames, "rename").items():
            found, value = self._get_nested_value(result, from_path)
            if found:
                self._delete_nested_value(result, from_path)
                self._set_nested_value(result, str(to_path), value)

        remove = self.get_parameter(params, "remove", [])
        if isinstance(remove, str):
            remove = [remove]
        for path in remove:
            self._delete_nested_value(result, str(path))

        appends = self.get_parameter(params, "append", {})
        for path, value in self._as_mapping(appends, "append").items():
            found, current = self._get_nested_value(result, path)
            if not found or current is None:
                current = []
            elif not isinstance(current, list):
                raise StepExecutionError(f'Cannot append to "{path}": it is not a list')
            self._set_nested_value(result, path, [*current, value])

        return self.output(result)

    def _filter(self, items: list[Any], where: Any) -> list[Any]:
        if not isinstance(where, dict) or not where.get("field"):
            raise StepExecutionError('Filter needs a "where" object with a "field"')
        operator = where.get("operator", "equals")
        kept = []
        for item in items:
            _, field_value = self._get_nested_value(item, str(where["field"]))
            if compare(field_value, operator, where.get("value")):
                kept.append(copy.deepcopy(item))
        return kept

    def _map(self, items: list[Any], mapping: Any, context: RunContext) -> list[Any]:
        if mapping is None:
            return copy.deepcopy(items)
        mapping = self._as_mapping(mapping, "mapping")

        mapped = []
        for index, item in enumerate(items):
            new_item = copy.deepcopy(item) if isinstance(item, dict) else {}
            for key, expr in mapping.items():
                new_item[key] = self._map_value(expr, item, index, context)
            mapped.append(new_item)
        return mapped

    def _map_value(self, expr: Any, item: Any, index: int, context: RunContext) -> Any:
        if not isinstance(expr, str):
            return expr
        if expr == "$item":
            return copy.deepcopy(item)
        if expr == "$index":
            return index
        if expr == "$now":
            return context.clock.now().isoformat()
        if expr.startswith(ITEM_PREFIX):
            _, value = self._get_nested_value(item, expr[len(ITEM_PREFIX):])
            return copy.deepcopy(value)
        return expr

    def _as_mapping(self, value: Any, name: str) -> Mapping[str, Any]:
        if not isinstance(value, Mapping):
            raise StepExecutionError(f'Transform "{name}" must be an object, got {type(value).__name__}')
        return value

    def _get_nested_value(self, obj: Any, path: str) -> tuple[bool, Any]:
        """Get value at nested path, reporting whether it exists."""
        current: Any = obj
        for key in path.split("."):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return False, None
        return True, current

    def _set_nested_value(self, obj: dict[str, Any], path: str, value: Any) -> None:
        """Set value at nested path, creating intermediate objects as needed."""
        keys = path.split(".")
        current = obj

        for key in keys[:-1]:
            if key not in current or not isinstance(current[key], dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _delete_nested_value(self, obj: dict[str, Any], path: str) -> None:
        """Delete value at nested path."""
        keys = path.split(".")
        current = obj

        for key in keys[:-1]:
            if key not in current or not isinstance(current[key], dict):
                return  # Path doesn't exist
            current = current[key]

        current.pop(keys[-1], None)
