"""Custom exceptions for the automation engine."""

from typing import Any


class WorkflowEngineError(Exception):
    """Base exception for all automation engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class WorkflowInvalidError(WorkflowEngineError):
    """Raised when a workflow definition fails structural validation.

    Always raised before any node executes, so no run is ever created.
    """

    def __init__(self, problems: list[str], workflow_id: str | None = None) -> None:
        summary = "; ".join(problems) if problems else "invalid workflow"
        super().__init__(
            message=f"Invalid workflow: {summary}",
            details={"workflow_id": workflow_id, "problems": list(problems)},
        )
        self.problems = list(problems)
        self.workflow_id = workflow_id


class ResolutionError(WorkflowEngineError):
    """Raised when a {{ }} template references a missing or mistyped path."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            message=f'Cannot resolve "{path}": {reason}',
            details={"path": path, "reason": reason},
        )
        self.path = path
        self.reason = reason


class StepExecutionError(WorkflowEngineError):
    """Raised by a step executor when it fails."""

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message=message, details={"retryable": retryable})
        self.retryable = retryable


class CancellationError(WorkflowEngineError):
    """Marks work that was interrupted by an external cancellation signal."""

    def __init__(self, message: str = "Run cancelled") -> None:
        super().__init__(message=message)


class StepTypeNotFoundError(WorkflowEngineError):
    """Raised when a step type is not registered."""

    def __init__(self, step_type: str) -> None:
        super().__init__(
            message=f'Unknown step type: "{step_type}"',
            details={"step_type": step_type},
        )
        self.step_type = step_type


class WorkflowNotFoundError(WorkflowEngineError):
    """Raised when a workflow is not found."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(
            message=f"Workflow not found: {workflow_id}",
            details={"workflow_id": workflow_id},
        )
        self.workflow_id = workflow_id


class RunNotFoundError(WorkflowEngineError):
    """Raised when a run record is not found."""

    def __init__(self, run_id: str) -> None:
        super().__init__(
            message=f"Run not found: {run_id}",
            details={"run_id": run_id},
        )
        self.run_id = run_id
