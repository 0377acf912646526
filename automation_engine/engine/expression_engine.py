"""
Expression engine for resolving {{ }} template expressions.

Templates are dotted paths walked through a run's committed node outputs and
its global input. Boolean conditions use simpleeval for safe expression
evaluation (no eval() or exec()).
"""

from __future__ import annotations

import copy
import json
import logging
import math
import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from simpleeval import SimpleEval, DEFAULT_FUNCTIONS, DEFAULT_OPERATORS

from ..core.exceptions import ResolutionError

if TYPE_CHECKING:
    from .types import RunContext

logger = logging.getLogger(__name__)

TEMPLATE_PATTERN = re.compile(r"\{\{(.+?)\}\}")

# Explicit prefix for the caller-supplied input, e.g. {{ $input.user.id }}
INPUT_ROOT = "$input"


class ExpressionEngine:
    """
    Resolves templates against a run context.

    Resolution is pure: the same template and context always yield the same
    value, and nothing in the context is mutated.
    """

    def __init__(self) -> None:
        self._setup_evaluator()

    def _setup_evaluator(self) -> None:
        """Set up the safe evaluator with allowed functions."""
        self.evaluator = SimpleEval()
        self.evaluator.operators = DEFAULT_OPERATORS.copy()

        # Only deterministic helpers: no clocks, randomness or environment
        self.evaluator.functions = {
            **DEFAULT_FUNCTIONS,
            # Type conversion
            "str": str,
            "int": int,
            "float": float,
            "bool": bool,
            # String functions
            "lower": lambda s: str(s).lower(),
            "upper": lambda s: str(s).upper(),
            "trim": lambda s: str(s).strip(),
            "includes": lambda s, search: search in s,
            "startswith": lambda s, prefix: str(s).startswith(prefix),
            "endswith": lambda s, suffix: str(s).endswith(suffix),
            "length": lambda x: len(x),
            # Array functions
            "first": lambda arr: arr[0] if arr else None,
            "last": lambda arr: arr[-1] if arr else None,
            # Math functions
            "abs": abs,
            "min": min,
            "max": max,
            "sum": sum,
            "round": round,
            "floor": math.floor,
            "ceil": math.ceil,
            # Type checking
            "is_empty": lambda v: v is None or v == "" or (isinstance(v, (list, dict)) and len(v) == 0),
            "is_none": lambda v: v is None,
            "get": lambda d, key, default=None: d.get(key, default) if isinstance(d, Mapping) else default,
        }

    def resolve(self, template: Any, context: RunContext) -> Any:
        """
        Resolve all {{ }} expressions in a value.

        Handles strings, objects, and arrays recursively. Non-string scalars
        pass through unchanged.

        Raises:
            ResolutionError: If a referenced path does not exist
        """
        return self._resolve(template, context.snapshot(), context.global_input)

    def _resolve(
        self,
        value: Any,
        variables: Mapping[str, Any],
        global_input: Mapping[str, Any],
    ) -> Any:
        if isinstance(value, str):
            return self._resolve_string(value, variables, global_input)

        if isinstance(value, (list, tuple)):
            return [self._resolve(item, variables, global_input) for item in value]

        if isinstance(value, Mapping):
            return {
                key: self._resolve(val, variables, global_input) for key, val in value.items()
            }

        return value

    def _resolve_string(
        self,
        string: str,
        variables: Mapping[str, Any],
        global_input: Mapping[str, Any],
    ) -> Any:
        trimmed = string.strip()

        # Whole string is a single expression: return the typed value
        if trimmed.startswith("{{") and trimmed.endswith("}}"):
            inner = trimmed[2:-2]
            if "{{" not in inner and "}}" not in inner:
                return self.lookup(inner.strip(), variables, global_input)

        def replacer(match: re.Match[str]) -> str:
            result = self.lookup(match.group(1).strip(), variables, global_input)
            return self._stringify(result)

        return TEMPLATE_PATTERN.sub(replacer, string)

    def lookup(
        self,
        path: str,
        variables: Mapping[str, Any],
        global_input: Mapping[str, Any],
    ) -> Any:
        """
        Walk a dotted path.

        The first segment names a node output; failing that it is looked up
        in the global input. ``$input`` addresses the global input explicitly.
        Numeric segments index sequences.
        """
        if not path:
            raise ResolutionError(path, "empty expression")

        segments = path.split(".")
        root = segments[0]

        if root == INPUT_ROOT:
            current: Any = global_input
            rest = segments[1:]
        elif root in variables:
            current = variables[root]
            rest = segments[1:]
        elif root in global_input:
            current = global_input[root]
            rest = segments[1:]
        else:
            raise ResolutionError(path, f'no node output or input field named "{root}"')

        walked = [root]
        for segment in rest:
            current = self._step(current, segment, path, ".".join(walked))
            walked.append(segment)

        if isinstance(current, Mapping):
            current = dict(current)
        return copy.deepcopy(current)

    def _step(self, current: Any, segment: str, path: str, walked: str) -> Any:
        if isinstance(current, Mapping):
            if segment not in current:
                raise ResolutionError(path, f'"{walked}" has no key "{segment}"')
            return current[segment]

        if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not segment.isdigit():
                raise ResolutionError(path, f'"{walked}" is a list, "{segment}" is not an index')
            index = int(segment)
            if index >= len(current):
                raise ResolutionError(
                    path, f'index {index} out of range for "{walked}" (length {len(current)})'
                )
            return current[index]

        raise ResolutionError(
            path, f'"{walked}" is a {type(current).__name__}, cannot read "{segment}"'
        )

    def evaluate(self, expression: str, context: RunContext) -> Any:
        """
        Evaluate a boolean/arithmetic expression safely using simpleeval.

        Node outputs are available by (sanitized) node id, the global input
        as ``input``.

        Raises:
            ResolutionError: If the expression cannot be evaluated
        """
        names: dict[str, Any] = {"input": dict(context.global_input)}
        for node_id, value in context.snapshot().items():
            names[self._sanitize_name(node_id)] = copy.deepcopy(value)

        evaluator = SimpleEval(
            operators=self.evaluator.operators,
            functions=self.evaluator.functions,
            names=names,
        )
        try:
            return evaluator.eval(expression)
        except Exception as e:
            logger.debug("Expression evaluation failed: %s (expression: %s)", e, expression)
            raise ResolutionError(expression, str(e)) from e

    def _sanitize_name(self, name: str) -> str:
        """Sanitize node id for use as variable name."""
        return re.sub(r"[^a-zA-Z0-9_]", "_", name)

    def _stringify(self, value: Any) -> str:
        """Convert value to string for interpolation."""
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)


# Singleton instance
expression_engine = ExpressionEngine()
