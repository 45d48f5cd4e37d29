"""Workflow engine applying audited, permission-checked operations."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from .contracts import Actor, AuditAction, AuditEntry, StepState, utc_now
from .errors import Forbidden
from .ledger import AuditLedger, InMemoryAuditLedger
from .permissions import PermissionGate, RoleMatrixGate
from .pipeline import PipelineStatus
from .workflow import WorkflowInstance

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class WorkflowEngine:
    """Runs step and review operations against explicit workflow instances.

    The engine holds no workflow state of its own. Each operation validates
    first and mutates second, so a raised :class:`~roomflow.errors.WorkflowError`
    leaves the instance untouched. Every status change is written to the
    audit ledger and mirrored into the instance's own history.
    """

    def __init__(
        self,
        gate: Optional[PermissionGate] = None,
        ledger: Optional[AuditLedger] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.gate = gate or RoleMatrixGate()
        self.ledger = ledger or InMemoryAuditLedger()
        self._clock = clock

    # ------------------------------------------------------------------
    def _record(
        self,
        instance: WorkflowInstance,
        actor: Actor,
        action: AuditAction,
        ref: str,
        now: datetime,
        reason: Optional[str] = None,
    ) -> AuditEntry:
        entry = self.ledger.append(
            AuditEntry(
                unit_ref=instance.unit_ref,
                workflow_id=instance.id,
                resource_type=instance.resource_type,
                actor=actor.name,
                action=action,
                ref=ref,
                timestamp=now,
                reason=reason,
                status_after=instance.pipeline.status.value,
                stage_after=instance.pipeline.current_stage_index,
            )
        )
        instance.ledger.append(entry)
        return entry

    def can_review(self, instance: WorkflowInstance, actor: Actor, stage: Optional[int] = None) -> bool:
        """Whether ``actor`` may approve or reject ``stage`` (default: current)."""
        if not instance.pipeline.is_pending:
            return False
        stage = instance.pipeline.current_stage_index if stage is None else stage
        return self.gate.allows(actor.role, instance.resource_type, stage)

    def _authorize(self, instance: WorkflowInstance, actor: Actor, stage: int, action: str) -> None:
        if not self.gate.allows(actor.role, instance.resource_type, stage):
            logger.warning(
                f"{actor.name} ({actor.role or 'no role'}) may not {action} "
                f"{instance.resource_type} stage {stage} for unit={instance.unit_ref}"
            )
            raise Forbidden(f"role '{actor.role}' may not {action} {instance.resource_type} stage {stage}")

    # ------------------------------------------------------------------
    # Steps
    def update_step(self, instance: WorkflowInstance, index: int, patch: Any) -> StepState:
        """Merge ``patch`` into a step; edits are not audited."""
        return instance.update_step_payload(index, patch)

    def complete_step(
        self,
        instance: WorkflowInstance,
        index: int,
        actor: Actor,
        now: Optional[datetime] = None,
    ) -> StepState:
        """Complete step ``index``; completing the last step submits."""
        now = now or self._clock()
        state = instance.complete_step(index, actor.name, now)
        name = instance.definitions[index].name
        logger.info(f"Step {index} ({name}) completed by {actor.name} for unit={instance.unit_ref}")
        self._record(instance, actor, AuditAction.COMPLETE, f"step:{index}:{name}", now)
        if index == instance.last_index and instance.pipeline.status is PipelineStatus.NOT_SUBMITTED:
            instance.submit()
            self._record(instance, actor, AuditAction.SUBMIT, "pipeline", now)
            logger.info(f"Submitted {instance.resource_type} unit={instance.unit_ref} for review")
        return state

    def submit(self, instance: WorkflowInstance, actor: Actor, now: Optional[datetime] = None) -> AuditEntry:
        """Submit explicitly; needed for templates without steps."""
        now = now or self._clock()
        instance.submit()
        logger.info(f"Submitted {instance.resource_type} unit={instance.unit_ref} for review")
        return self._record(instance, actor, AuditAction.SUBMIT, "pipeline", now)

    # ------------------------------------------------------------------
    # Reviews
    def approve(
        self,
        instance: WorkflowInstance,
        actor: Actor,
        stage: int,
        now: Optional[datetime] = None,
    ) -> AuditEntry:
        self._authorize(instance, actor, stage, "approve")
        now = now or self._clock()
        stage_name = instance.pipeline.stages[stage] if 0 <= stage < len(instance.pipeline.stages) else "?"
        instance.pipeline.approve(stage)
        logger.info(
            f"{actor.name} approved {instance.resource_type} stage {stage} ({stage_name}) "
            f"for unit={instance.unit_ref}; now {instance.pipeline.label()}"
        )
        return self._record(instance, actor, AuditAction.APPROVE, f"stage:{stage}:{stage_name}", now)

    def reject(
        self,
        instance: WorkflowInstance,
        actor: Actor,
        stage: int,
        reason: str,
        now: Optional[datetime] = None,
    ) -> AuditEntry:
        self._authorize(instance, actor, stage, "reject")
        now = now or self._clock()
        instance.pipeline.reject(stage, reason)
        stage_name = instance.pipeline.stages[stage]
        logger.info(
            f"{actor.name} rejected {instance.resource_type} stage {stage} ({stage_name}) "
            f"for unit={instance.unit_ref}: {instance.pipeline.reject_reason}"
        )
        return self._record(
            instance,
            actor,
            AuditAction.REJECT,
            f"stage:{stage}:{stage_name}",
            now,
            reason=instance.pipeline.reject_reason,
        )

    def resubmit(self, instance: WorkflowInstance, actor: Actor, now: Optional[datetime] = None) -> AuditEntry:
        """Send a rejected unit back to the first stage with its data intact."""
        now = now or self._clock()
        instance.pipeline.resubmit()
        logger.info(f"Resubmitted {instance.resource_type} unit={instance.unit_ref}")
        return self._record(instance, actor, AuditAction.RESET, "pipeline:resubmit", now)

    def reopen(self, instance: WorkflowInstance, actor: Actor, now: Optional[datetime] = None) -> AuditEntry:
        """Unlock a rejected unit's last completed step onward for revision."""
        now = now or self._clock()
        unlocked = instance.reopen()
        logger.info(f"Reopened {instance.resource_type} unit={instance.unit_ref} from step {unlocked}")
        return self._record(instance, actor, AuditAction.RESET, f"pipeline:reopen:{unlocked}", now)

    def supersede(self, instance: WorkflowInstance, actor: Actor, now: Optional[datetime] = None) -> AuditEntry:
        """Retire a pending unit replaced by a newer request."""
        now = now or self._clock()
        instance.pipeline.supersede()
        logger.info(f"Superseded {instance.resource_type} workflow {instance.id} for unit={instance.unit_ref}")
        return self._record(instance, actor, AuditAction.SUPERSEDE, "pipeline", now)

    def history(self, unit_ref: str) -> List[AuditEntry]:
        return self.ledger.list_for_unit(unit_ref)
