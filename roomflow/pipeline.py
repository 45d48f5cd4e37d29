"""Ordered approval stages applied once a workflow's steps are complete."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .errors import InvalidTransition, MissingReason


class PipelineStatus(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    IN_STAGE = "in_stage"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


TERMINAL_STATUSES = frozenset({PipelineStatus.APPROVED, PipelineStatus.SUPERSEDED})


class ApprovalPipeline(BaseModel):
    """Review chain state machine.

    ``not_submitted -> in_stage(0) -> ... -> in_stage(n-1) -> approved``, with
    ``rejected`` reachable from any stage and left again by ``resubmit`` (back
    to stage 0) or ``reopen`` (back to ``not_submitted`` for revision).
    ``current_stage_index`` only grows through approvals; it equals
    ``len(stages)`` once approved.

    Permission checks are not done here; see :class:`~roomflow.engine.WorkflowEngine`.
    """

    stages: List[str] = Field(min_length=1)
    current_stage_index: int = 0
    status: PipelineStatus = PipelineStatus.NOT_SUBMITTED
    reject_reason: Optional[str] = None
    rejected_stage: Optional[int] = None

    @property
    def current_stage(self) -> Optional[str]:
        if self.status is not PipelineStatus.IN_STAGE:
            return None
        return self.stages[self.current_stage_index]

    @property
    def is_pending(self) -> bool:
        return self.status is PipelineStatus.IN_STAGE

    @property
    def is_final(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def label(self) -> str:
        """Short human readable status, e.g. ``in_stage(1:art_review)``."""
        if self.status is PipelineStatus.IN_STAGE:
            return f"in_stage({self.current_stage_index}:{self.current_stage})"
        return self.status.value

    def _require(self, *allowed: PipelineStatus, action: str) -> None:
        if self.status not in allowed:
            raise InvalidTransition(f"cannot {action} while {self.label()}")

    def _require_current(self, stage: int, action: str) -> None:
        self._require(PipelineStatus.IN_STAGE, action=action)
        if stage != self.current_stage_index:
            raise InvalidTransition(
                f"cannot {action} stage {stage}; review is at stage {self.current_stage_index}"
            )

    def submit(self) -> None:
        self._require(PipelineStatus.NOT_SUBMITTED, action="submit")
        self.status = PipelineStatus.IN_STAGE
        self.current_stage_index = 0

    def approve(self, stage: int) -> None:
        self._require_current(stage, "approve")
        self.current_stage_index += 1
        if self.current_stage_index >= len(self.stages):
            self.status = PipelineStatus.APPROVED

    def reject(self, stage: int, reason: str) -> None:
        if not reason or not reason.strip():
            raise MissingReason("a reason is required to reject")
        self._require_current(stage, "reject")
        self.status = PipelineStatus.REJECTED
        self.reject_reason = reason.strip()
        self.rejected_stage = stage

    def resubmit(self) -> None:
        self._require(PipelineStatus.REJECTED, action="resubmit")
        self.status = PipelineStatus.IN_STAGE
        self.current_stage_index = 0
        self.reject_reason = None
        self.rejected_stage = None

    def reopen(self) -> None:
        self._require(PipelineStatus.REJECTED, action="reopen")
        self.status = PipelineStatus.NOT_SUBMITTED
        self.current_stage_index = 0
        self.reject_reason = None
        self.rejected_stage = None

    def supersede(self) -> None:
        self._require(PipelineStatus.NOT_SUBMITTED, PipelineStatus.IN_STAGE, action="supersede")
        self.status = PipelineStatus.SUPERSEDED
