"""Append-only audit ledger abstraction."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from pydantic import BaseModel

from ..contracts import AuditEntry
from ..pipeline import PipelineStatus


class PendingReview(BaseModel):
    """A unit whose pipeline is waiting on a review stage."""

    unit_ref: str
    workflow_id: Optional[str] = None
    resource_type: str
    stage: int
    since: datetime


class AuditLedger(Protocol):
    """Protocol for audit ledger backends.

    Entries are never mutated or deleted; corrections are new entries.
    """

    def append(self, entry: AuditEntry) -> AuditEntry:
        """Store ``entry`` and return it with its sequence number."""

    def list_for_unit(self, unit_ref: str) -> list[AuditEntry]:
        """Return entries for ``unit_ref`` in append order."""

    def list_pending(self, resource_type: str) -> list[PendingReview]:
        """Return units of ``resource_type`` currently waiting on a stage."""


def pending_from_entries(entries: Iterable[AuditEntry], resource_type: str) -> list[PendingReview]:
    """Replay ``entries`` (in append order) and keep the in-stage units."""
    latest: dict[str, AuditEntry] = {}
    for entry in entries:
        if entry.resource_type != resource_type or entry.status_after is None:
            continue
        latest[entry.workflow_id or entry.unit_ref] = entry
    return [
        PendingReview(
            unit_ref=entry.unit_ref,
            workflow_id=entry.workflow_id,
            resource_type=entry.resource_type,
            stage=entry.stage_after or 0,
            since=entry.timestamp,
        )
        for entry in latest.values()
        if entry.status_after == PipelineStatus.IN_STAGE.value
    ]
