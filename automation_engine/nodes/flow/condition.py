"""Condition node - pick an outgoing branch (true/false by default)."""

from __future__ import annotations

import re
from typing import Any, Mapping, TYPE_CHECKING

from ..base import (
    BaseNode,
    NodeTypeDescription,
    NodeProperty,
    NodePropertyOption,
)
from ...core.exceptions import StepExecutionError
from ...engine.expression_engine import expression_engine

if TYPE_CHECKING:
    from ...engine.types import RunContext, StepOutput


OPERATORS = (
    "equals",
    "notEquals",
    "contains",
    "notContains",
    "greaterThan",
    "greaterOrEqual",
    "lessThan",
    "lessOrEqual",
    "isEmpty",
    "isNotEmpty",
    "isTrue",
    "isFalse",
    "regex",
)


def compare(field_value: Any, operator: str, compare_value: Any) -> bool:
    """Apply a named comparison operator."""
    if operator == "equals":
        return field_value == compare_value
    elif operator == "notEquals":
        return field_value != compare_value
    elif operator == "contains":
        return str(compare_value) in str(field_value)
    elif operator == "notContains":
        return str(compare_value) not in str(field_value)
    elif operator in ("greaterThan", "greaterOrEqual", "lessThan", "lessOrEqual"):
        try:
            left, right = float(field_value), float(compare_value)
        except (ValueError, TypeError):
            return False
        if operator == "greaterThan":
            return left > right
        if operator == "greaterOrEqual":
            return left >= right
        if operator == "lessThan":
            return left < right
        return left <= right
    elif operator == "isEmpty":
        return field_value is None or field_value == "" or field_value == [] or field_value == {}
    elif operator == "isNotEmpty":
        return not compare(field_value, "isEmpty", compare_value)
    elif operator == "isTrue":
        return field_value is True or field_value == "true" or field_value == 1
    elif operator == "isFalse":
        return field_value is False or field_value == "false" or field_value == 0
    elif operator == "regex":
        try:
            return bool(re.search(str(compare_value), str(field_value)))
        except re.error:
            return False
    raise StepExecutionError(f'Unknown condition operator "{operator}"')


class ConditionNode(BaseNode):
    """Condition node - evaluate a boolean and select the matching branch."""

    emits_branches = True

    node_description = NodeTypeDescription(
        name="condition",
        display_name="Condition",
        description="Route execution based on a condition (true/false branches)",
        group=["flow"],
        outputs=["true", "false"],
        properties=[
            NodeProperty(
                display_name="Expression",
                name="expression",
                type="string",
                description=(
                    "Boolean expression over node outputs and input, e.g. "
                    "fetch['statusCode'] == 200. Templates are substituted before the "
                    "expression is parsed, so quote templated strings: "
                    "'{{ a.status }}' == 'ok'. If provided, value/operator/compare are ignored."
                ),
            ),
            NodeProperty(
                display_name="Value",
                name="value",
                type="json",
                description="Value to test. Usually a template such as {{ score.total }}.",
            ),
            NodeProperty(
                display_name="Operator",
                name="operator",
                type="options",
                default="isTrue",
                options=[NodePropertyOption(name=op, value=op) for op in OPERATORS],
            ),
            NodeProperty(
                display_name="Compare To",
                name="compare",
                type="json",
                description="Value to compare against",
            ),
            NodeProperty(
                display_name="True Branch",
                name="trueBranch",
                type="string",
                default="true",
            ),
            NodeProperty(
                display_name="False Branch",
                name="falseBranch",
                type="string",
                default="false",
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "condition"

    @property
    def description(self) -> str:
        return "Route execution based on a condition (true/false branches)"

    async def execute(self, params: Mapping[str, Any], context: RunContext) -> StepOutput:
        true_branch = str(self.get_parameter(params, "trueBranch", "true"))
        false_branch = str(self.get_parameter(params, "falseBranch", "false"))

        if "expression" in params:
            expression = params["expression"]
            # A whole-template expression already resolved to a typed value
            if isinstance(expression, str):
                engine = context.expression_engine or expression_engine
                result = bool(engine.evaluate(expression, context))
            else:
                result = bool(expression)
        elif "value" in params:
            operator = self.get_parameter(params, "operator", "isTrue")
            result = compare(params["value"], operator, params.get("compare"))
        else:
            raise StepExecutionError('Condition needs either "expression" or "value"')

        tag = true_branch if result else false_branch
        return self.branch(tag, {"result": result, "branch": tag})
