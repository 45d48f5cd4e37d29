"""Audit ledger backends for roomflow."""

from __future__ import annotations

from typing import Optional

from ..config import RoomflowConfig
from ..utils.backends import BackendCache
from .base import AuditLedger, PendingReview, pending_from_entries
from .inmemory import InMemoryAuditLedger
from .sql import AuditRecord, SQLAuditLedger


def open_ledger(ledger_url: Optional[str]) -> AuditLedger:
    """Any SQLAlchemy URL (``sqlite:///audit.db``, ``postgresql://...``) opens
    the SQL ledger; an empty URL keeps entries in memory."""
    if not ledger_url:
        return InMemoryAuditLedger()
    return SQLAuditLedger(ledger_url)


_ledgers: BackendCache[AuditLedger] = BackendCache(open_ledger, "ledger_url")


def get_ledger(
    ledger_url: Optional[str] = None, config: Optional[RoomflowConfig] = None
) -> AuditLedger:
    """Ledger for ``ledger_url`` or ``config.ledger_url``, cached like repositories."""
    return _ledgers.get(ledger_url, config)


def use_ledger(ledger: AuditLedger, ledger_url: Optional[str] = None) -> AuditLedger:
    return _ledgers.use(ledger, ledger_url)


__all__ = [
    "AuditLedger",
    "AuditRecord",
    "InMemoryAuditLedger",
    "PendingReview",
    "SQLAuditLedger",
    "get_ledger",
    "open_ledger",
    "pending_from_entries",
    "use_ledger",
]
