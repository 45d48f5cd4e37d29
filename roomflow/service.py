"""Async facade persisting workflow instances around the engine."""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .assets import AssetService
from .checks import BackgroundCheck, CheckResult, Probe
from .config import RoomflowConfig, load_config
from .contracts import Actor, AuditEntry, StepState
from .engine import WorkflowEngine
from .errors import Locked, UnknownWorkflow
from .ledger import PendingReview, get_ledger
from .permissions import RoleMatrixGate
from .persistence import InMemoryWorkflowRepository, WorkflowRepository, get_repository
from .templates import TemplateRegistry
from .workflow import WorkflowInstance

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkflowService:
    """Load, mutate and save workflow instances one unit at a time.

    Every mutation runs under the unit's lock on a freshly loaded copy and is
    saved only when the engine operation succeeds, so a rejected operation
    never reaches the repository.
    """

    def __init__(
        self,
        repository: Optional[WorkflowRepository] = None,
        engine: Optional[WorkflowEngine] = None,
        registry: Optional[TemplateRegistry] = None,
        assets: Optional[AssetService] = None,
        config: Optional[RoomflowConfig] = None,
    ) -> None:
        self.config = config or RoomflowConfig()
        self.repository = repository or InMemoryWorkflowRepository()
        self.engine = engine or WorkflowEngine()
        self.registry = registry or TemplateRegistry(self.config)
        self.assets = assets
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._checks: Dict[str, List[BackgroundCheck]] = defaultdict(list)

    @classmethod
    def from_config(
        cls, config: Optional[RoomflowConfig] = None, assets: Optional[AssetService] = None
    ) -> "WorkflowService":
        """Build a service with the configured repository, ledger and permissions."""
        config = config or load_config()
        gate = RoleMatrixGate(config.permissions, superuser_roles=config.superuser_roles)
        engine = WorkflowEngine(gate=gate, ledger=get_ledger(config=config))
        return cls(
            repository=get_repository(config=config),
            engine=engine,
            registry=TemplateRegistry(config),
            assets=assets,
            config=config,
        )

    def _lock(self, unit_ref: str) -> asyncio.Lock:
        # Locks live only while a mutation holds or waits on them.
        lock = self._locks.get(unit_ref)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[unit_ref] = lock
        return lock

    # ------------------------------------------------------------------
    # Reads
    async def get(self, workflow_id: str) -> WorkflowInstance:
        instance = await self.repository.get_workflow(workflow_id)
        if instance is None:
            raise UnknownWorkflow(f"no workflow {workflow_id}")
        return instance

    async def list_for_unit(self, unit_ref: str) -> List[WorkflowInstance]:
        return await self.repository.list_for_unit(unit_ref)

    async def pending(self, resource_type: str) -> List[PendingReview]:
        """Units of ``resource_type`` waiting on a review stage."""
        return self.engine.ledger.list_pending(resource_type)

    def history(self, unit_ref: str) -> List[AuditEntry]:
        return self.engine.history(unit_ref)

    # ------------------------------------------------------------------
    # Mutations
    async def _mutate(self, workflow_id: str, operation: Callable[[WorkflowInstance], T]) -> T:
        unit_ref = (await self.get(workflow_id)).unit_ref
        async with self._lock(unit_ref):
            instance = await self.get(workflow_id)
            result = operation(instance)
            await self.repository.save(instance)
            return result

    async def initiate(
        self,
        template: str,
        unit_ref: str,
        attributes: Optional[Dict[str, Any]] = None,
        **params: Any,
    ) -> WorkflowInstance:
        """Start a workflow for ``unit_ref`` from a registered template."""
        instance = self.registry.instantiate(template, unit_ref, attributes=attributes, **params)
        async with self._lock(unit_ref):
            await self.repository.save(instance)
        logger.info(f"Initiated {template} workflow {instance.id} for unit={unit_ref}")
        return instance

    async def update(self, workflow_id: str, index: int, patch: Any) -> StepState:
        return await self._mutate(workflow_id, lambda wf: self.engine.update_step(wf, index, patch))

    async def complete_step(self, workflow_id: str, index: int, actor: Actor) -> WorkflowInstance:
        """Complete a step; the instance comes back with its pipeline state."""

        def operation(wf: WorkflowInstance) -> WorkflowInstance:
            self.engine.complete_step(wf, index, actor)
            return wf

        return await self._mutate(workflow_id, operation)

    async def submit(self, workflow_id: str, actor: Actor) -> AuditEntry:
        return await self._mutate(workflow_id, lambda wf: self.engine.submit(wf, actor))

    async def approve(self, workflow_id: str, actor: Actor, stage: Optional[int] = None) -> AuditEntry:
        """Approve ``stage``, by default whichever stage is under review."""
        return await self._mutate(
            workflow_id,
            lambda wf: self.engine.approve(
                wf, actor, wf.pipeline.current_stage_index if stage is None else stage
            ),
        )

    async def reject(
        self, workflow_id: str, actor: Actor, reason: str, stage: Optional[int] = None
    ) -> AuditEntry:
        return await self._mutate(
            workflow_id,
            lambda wf: self.engine.reject(
                wf, actor, wf.pipeline.current_stage_index if stage is None else stage, reason
            ),
        )

    async def resubmit(self, workflow_id: str, actor: Actor) -> AuditEntry:
        return await self._mutate(workflow_id, lambda wf: self.engine.resubmit(wf, actor))

    async def reopen(self, workflow_id: str, actor: Actor) -> AuditEntry:
        return await self._mutate(workflow_id, lambda wf: self.engine.reopen(wf, actor))

    # ------------------------------------------------------------------
    # Media and background checks
    async def upload_media(
        self,
        workflow_id: str,
        index: int,
        sub_unit_id: str,
        category: str,
        data: bytes,
        filename: str = "upload.bin",
        content_type: str = "application/octet-stream",
    ) -> StepState:
        """Upload ``data`` and attach the returned ref to a sub-unit category."""
        if self.assets is None:
            raise RuntimeError("no asset service configured")
        if not (await self.get(workflow_id)).is_unlocked(index):
            raise Locked(f"step {index} of {workflow_id} is locked")
        ref = await self.assets.upload(data, filename=filename, content_type=content_type)
        return await self.update(workflow_id, index, {sub_unit_id: {category: {"media": [ref]}}})

    def start_check(
        self,
        workflow_id: str,
        index: int,
        sub_unit_id: str,
        category: str,
        param: str,
        probe: Probe,
        **options: Any,
    ) -> BackgroundCheck:
        """Probe a device in the background and record the result as ``param``.

        The result is written with the same update a manual edit would make.
        """

        async def record(result: CheckResult) -> None:
            await self.update(
                workflow_id, index, {sub_unit_id: {category: {"params": {param: result.passed}}}}
            )

        options.setdefault("attempts", self.config.checks.attempts)
        options.setdefault("backoff_base", self.config.checks.backoff_base)
        check = BackgroundCheck(f"{workflow_id}:{sub_unit_id}:{param}", probe, record, **options)
        self._checks[workflow_id].append(check)
        check.start().add_done_callback(lambda _: self._forget_check(workflow_id, check))
        return check

    def _forget_check(self, workflow_id: str, check: BackgroundCheck) -> None:
        checks = self._checks.get(workflow_id)
        if checks is None or check not in checks:
            return
        checks.remove(check)
        if not checks:
            del self._checks[workflow_id]

    def running_checks(self, workflow_id: str) -> List[BackgroundCheck]:
        return list(self._checks.get(workflow_id, []))

    def cancel_checks(self, workflow_id: str) -> int:
        """Cancel outstanding checks for a workflow; returns how many were running."""
        checks = self._checks.pop(workflow_id, [])
        running = [c for c in checks if c.running]
        for check in checks:
            check.cancel()
        return len(running)


__all__ = ["WorkflowService"]
