"""Repository abstraction for workflow state persistence."""

from __future__ import annotations

from typing import Protocol

from ..workflow import WorkflowInstance


class WorkflowRepository(Protocol):
    """Protocol for workflow state persistence backends.

    Backends store whole :class:`WorkflowInstance` snapshots. ``save`` is an
    upsert keyed by the instance id, and every read returns a detached copy,
    so a caller's in-flight changes never leak into the store unsaved.
    """

    async def save(self, instance: WorkflowInstance) -> None:
        """Insert or replace the stored snapshot of ``instance``."""

    async def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        """Retrieve the workflow instance by id."""

    async def list_for_unit(self, unit_ref: str) -> list[WorkflowInstance]:
        """Return the unit's workflows, oldest first."""

    async def list_workflows(
        self, resource_type: str | None = None, status: str | None = None
    ) -> list[WorkflowInstance]:
        """Return persisted workflows, optionally filtered."""
