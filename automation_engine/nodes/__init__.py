"""Built-in step executors."""

from .base import BaseNode
from .triggers import ManualTriggerNode
from .flow import ConditionNode, DelayNode
from .http_request import HttpRequestNode
from .transform import TransformNode
from .output import OutputNode

__all__ = [
    "BaseNode",
    # Triggers
    "ManualTriggerNode",
    # Flow control
    "ConditionNode",
    "DelayNode",
    # Actions
    "HttpRequestNode",
    "TransformNode",
    "OutputNode",
]
