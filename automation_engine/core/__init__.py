"""Core module for the automation engine - config and exceptions."""

from .config import settings, Settings, get_settings
from .exceptions import (
    WorkflowEngineError,
    WorkflowInvalidError,
    ResolutionError,
    StepExecutionError,
    CancellationError,
    StepTypeNotFoundError,
    WorkflowNotFoundError,
    RunNotFoundError,
)

__all__ = [
    # Config
    "settings",
    "Settings",
    "get_settings",
    # Exceptions
    "WorkflowEngineError",
    "WorkflowInvalidError",
    "ResolutionError",
    "StepExecutionError",
    "CancellationError",
    "StepTypeNotFoundError",
    "WorkflowNotFoundError",
    "RunNotFoundError",
]
