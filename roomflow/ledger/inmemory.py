"""In-memory implementation of the audit ledger."""

from __future__ import annotations

from typing import List

from ..contracts import AuditEntry
from .base import AuditLedger, PendingReview, pending_from_entries


class InMemoryAuditLedger(AuditLedger):
    """Keep audit entries in local memory.

    Useful for tests or when no ledger database is configured. Entries are
    lost when the process exits.
    """

    def __init__(self) -> None:
        self._entries: List[AuditEntry] = []

    def append(self, entry: AuditEntry) -> AuditEntry:
        stored = entry.model_copy(update={"sequence": len(self._entries) + 1})
        self._entries.append(stored)
        return stored

    def list_for_unit(self, unit_ref: str) -> list[AuditEntry]:
        return [e for e in self._entries if e.unit_ref == unit_ref]

    def list_pending(self, resource_type: str) -> list[PendingReview]:
        return pending_from_entries(self._entries, resource_type)
