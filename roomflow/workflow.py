"""Ordered data-collection steps for one unit of work."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .contracts import (
    AuditEntry,
    StepDefinition,
    StepState,
    SubUnitPayload,
    empty_payload,
    utc_now,
)
from .errors import Invalid, InvalidTransition, Locked, MalformedPayload, OutOfOrder, StepNotFound
from .payloads import merge_payload, without_media
from .pipeline import ApprovalPipeline, PipelineStatus
from .validation import StepValidator

_validator = StepValidator()


class WorkflowInstance(BaseModel):
    """Steps, cursor and approval pipeline of one unit of work.

    A step can only be completed once every step before it is complete, and
    its payload is frozen from then on. After a rejection, :meth:`reopen`
    unlocks the last completed step (and anything after it) for revision;
    ``reopened_from`` marks that point until the workflow is submitted again.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    unit_ref: str
    resource_type: str
    template: str = ""
    definitions: List[StepDefinition] = Field(default_factory=list)
    steps: List[StepState] = Field(default_factory=list)
    pipeline: ApprovalPipeline
    ledger: List[AuditEntry] = Field(default_factory=list)
    cursor: int = 0
    reopened_from: Optional[int] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        unit_ref: str,
        resource_type: str,
        definitions: List[StepDefinition],
        stages: List[str],
        template: str = "",
        attributes: Optional[Dict[str, Any]] = None,
    ) -> "WorkflowInstance":
        """Start a new instance with empty payloads for every step."""
        ordered = sorted(definitions, key=lambda d: d.index)
        if [d.index for d in ordered] != list(range(len(ordered))):
            raise ValueError("step definitions must be indexed 0..n-1 without gaps")
        return cls(
            unit_ref=unit_ref,
            resource_type=resource_type,
            template=template or resource_type,
            definitions=ordered,
            steps=[StepState(index=d.index, payload=empty_payload(d.data_kind)) for d in ordered],
            pipeline=ApprovalPipeline(stages=stages),
            attributes=attributes or {},
        )

    # ------------------------------------------------------------------
    # Queries
    @property
    def last_index(self) -> int:
        return len(self.steps) - 1

    def definition(self, index: int) -> StepDefinition:
        self._check_index(index)
        return self.definitions[index]

    def step(self, index: int) -> StepState:
        self._check_index(index)
        return self.steps[index]

    def all_completed(self) -> bool:
        return all(s.completed for s in self.steps)

    def last_completed_index(self) -> Optional[int]:
        done = [s.index for s in self.steps if s.completed]
        return done[-1] if done else None

    def is_unlocked(self, index: int) -> bool:
        """Whether step ``index`` may still be edited."""
        self._check_index(index)
        if self.pipeline.is_final or self.pipeline.is_pending:
            return False
        if not self.steps[index].completed:
            return True
        return self.reopened_from is not None and index >= self.reopened_from

    def can_complete(self, index: int) -> bool:
        """Live "can I proceed" feedback for step ``index``."""
        self._check_index(index)
        if index > 0 and not self.steps[index - 1].completed:
            return False
        if not self.is_unlocked(index):
            return False
        return _validator.is_valid(self.definitions[index], self.steps[index].payload)

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= len(self.steps):
            raise StepNotFound(f"step {index} does not exist in {self.template} ({len(self.steps)} steps)")

    # ------------------------------------------------------------------
    # Mutations
    def complete_step(self, index: int, operator: str, now: Optional[datetime] = None) -> StepState:
        """Validate and stamp step ``index`` as completed."""
        self._check_index(index)
        if index > 0 and not self.steps[index - 1].completed:
            raise OutOfOrder(
                f"step {index} ({self.definitions[index].name}) needs step {index - 1} completed first"
            )
        if not self.is_unlocked(index):
            raise Locked(f"step {index} ({self.definitions[index].name}) is locked")
        definition = self.definitions[index]
        gaps = _validator.gaps(definition, self.steps[index].payload)
        if gaps:
            raise Invalid(f"step {index} ({definition.name}) is incomplete", gaps=gaps)
        if index == self.last_index and self.reopened_from is not None:
            # The final step resubmits, so revised earlier steps must still hold.
            for revised in range(self.reopened_from, index):
                revised_gaps = _validator.gaps(self.definitions[revised], self.steps[revised].payload)
                if revised_gaps:
                    raise Invalid(f"revised step {revised} is incomplete", gaps=revised_gaps)
        state = self.steps[index]
        state.completed = True
        state.completed_at = now or utc_now()
        state.operator = operator
        return state

    def update_step_payload(self, index: int, patch: Any) -> StepState:
        """Merge ``patch`` into step ``index``'s payload."""
        if not self.is_unlocked(index):
            raise Locked(f"step {index} ({self.definitions[index].name}) is locked")
        state = self.steps[index]
        state.payload = merge_payload(self.definitions[index], state.payload, patch)
        return state

    def edit_current_step(self, patch: Any) -> StepState:
        """Edit whatever step the cursor points at."""
        return self.update_step_payload(self.cursor, patch)

    def remove_media(self, index: int, sub_unit_id: str, category: str, ref: str) -> StepState:
        if not self.is_unlocked(index):
            raise Locked(f"step {index} ({self.definitions[index].name}) is locked")
        state = self.steps[index]
        if not isinstance(state.payload, SubUnitPayload):
            raise MalformedPayload(f"step {index} does not hold per-sub-unit media")
        state.payload = without_media(state.payload, sub_unit_id, category, ref)
        return state

    def submit(self) -> None:
        """Hand the completed steps to the approval pipeline."""
        if not self.all_completed():
            pending = [s.index for s in self.steps if not s.completed]
            raise InvalidTransition(f"cannot submit with incomplete steps {pending}")
        if self.reopened_from is not None:
            for index in range(self.reopened_from, len(self.steps)):
                gaps = _validator.gaps(self.definitions[index], self.steps[index].payload)
                if gaps:
                    raise Invalid(f"revised step {index} is incomplete", gaps=gaps)
        self.pipeline.submit()
        self.reopened_from = None

    def reopen(self) -> Optional[int]:
        """Unlock the last completed step onward after a rejection."""
        self.pipeline.reopen()
        self.reopened_from = self.last_completed_index()
        return self.reopened_from

    # ------------------------------------------------------------------
    # Navigation never changes completion state.
    def jump_to_step(self, index: int) -> int:
        self._check_index(index)
        self.cursor = index
        return self.cursor

    def next_step(self) -> int:
        if self.cursor < self.last_index:
            self.cursor += 1
        return self.cursor

    def prev_step(self) -> int:
        if self.cursor > 0:
            self.cursor -= 1
        return self.cursor

    def first_incomplete_index(self) -> int:
        """Where an editor should open; the last step when all are done."""
        for state in self.steps:
            if not state.completed:
                return state.index
        return max(self.last_index, 0)


__all__ = ["WorkflowInstance", "PipelineStatus"]
