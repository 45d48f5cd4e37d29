"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Dict

from ..workflow import WorkflowInstance
from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, WorkflowInstance] = {}

    async def save(self, instance: WorkflowInstance) -> None:
        self._workflows[instance.id] = instance.model_copy(deep=True)

    async def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        wf = self._workflows.get(workflow_id)
        return wf.model_copy(deep=True) if wf else None

    async def list_for_unit(self, unit_ref: str) -> list[WorkflowInstance]:
        found = [wf for wf in self._workflows.values() if wf.unit_ref == unit_ref]
        found.sort(key=lambda wf: wf.created_at)
        return [wf.model_copy(deep=True) for wf in found]

    async def list_workflows(
        self, resource_type: str | None = None, status: str | None = None
    ) -> list[WorkflowInstance]:
        return [
            wf.model_copy(deep=True)
            for wf in self._workflows.values()
            if (resource_type is None or wf.resource_type == resource_type)
            and (status is None or wf.pipeline.status.value == status)
        ]
