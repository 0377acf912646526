"""Service layer for the automation engine."""

from .execution_service import ExecutionService

__all__ = ["ExecutionService"]
