"""Trigger steps."""

from .manual_trigger import ManualTriggerNode

__all__ = ["ManualTriggerNode"]
