"""Errors raised by workflow operations.

Every error is raised before any state is touched, so a failed operation
leaves the workflow instance exactly as it was.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .contracts import Gap


class WorkflowError(Exception):
    """Base class for recoverable workflow failures."""

    code = "workflow_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class OutOfOrder(WorkflowError):
    """A step was completed before its predecessor."""

    code = "out_of_order"


class Invalid(WorkflowError):
    """Step payload does not satisfy the step's data contract."""

    code = "invalid"

    def __init__(self, message: str = "", gaps: Optional[List["Gap"]] = None) -> None:
        super().__init__(message)
        self.gaps = list(gaps or [])


class Locked(WorkflowError):
    """Edit attempted on a completed step that has not been reopened."""

    code = "locked"


class Forbidden(WorkflowError):
    """The permission gate denied a review action."""

    code = "forbidden"


class MissingReason(WorkflowError):
    code = "missing_reason"


class InvalidTransition(WorkflowError):
    """Pipeline operation not legal in the current status or stage."""

    code = "invalid_transition"


class StepNotFound(WorkflowError, IndexError):
    code = "step_not_found"


class MalformedPayload(WorkflowError, ValueError):
    """Payload shape could not be normalized for the step's data kind."""

    code = "malformed_payload"


class UnknownWorkflow(WorkflowError, KeyError):
    code = "unknown_workflow"

    def __str__(self) -> str:
        return self.message


__all__ = [
    "WorkflowError",
    "OutOfOrder",
    "Invalid",
    "Locked",
    "Forbidden",
    "MissingReason",
    "InvalidTransition",
    "StepNotFound",
    "MalformedPayload",
    "UnknownWorkflow",
]
