"""SQL implementation of the audit ledger backed by SQLModel."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, Session, SQLModel, create_engine, select

from ..contracts import AuditAction, AuditEntry
from .base import AuditLedger, PendingReview, pending_from_entries


class AuditRecord(SQLModel, table=True):
    """One row per ledger entry; ``id`` doubles as the sequence number."""

    id: Optional[int] = Field(default=None, primary_key=True)
    unit_ref: str = Field(index=True)
    workflow_id: Optional[str] = Field(default=None, index=True)
    resource_type: str = Field(index=True)
    actor: str
    action: str
    ref: str
    timestamp: datetime
    reason: Optional[str] = None
    status_after: Optional[str] = None
    stage_after: Optional[int] = None


def _to_entry(row: AuditRecord) -> AuditEntry:
    timestamp = row.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return AuditEntry(
        sequence=row.id,
        unit_ref=row.unit_ref,
        workflow_id=row.workflow_id,
        resource_type=row.resource_type,
        actor=row.actor,
        action=AuditAction(row.action),
        ref=row.ref,
        timestamp=timestamp,
        reason=row.reason,
        status_after=row.status_after,
        stage_after=row.stage_after,
    )


class SQLAuditLedger(AuditLedger):
    """Persist audit entries in any database SQLAlchemy can reach."""

    def __init__(self, database_url: str) -> None:
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_engine(database_url, echo=False, connect_args=connect_args)
        SQLModel.metadata.create_all(self.engine, tables=[AuditRecord.__table__])

    def append(self, entry: AuditEntry) -> AuditEntry:
        row = AuditRecord(
            unit_ref=entry.unit_ref,
            workflow_id=entry.workflow_id,
            resource_type=entry.resource_type,
            actor=entry.actor,
            action=entry.action.value,
            ref=entry.ref,
            timestamp=entry.timestamp,
            reason=entry.reason,
            status_after=entry.status_after,
            stage_after=entry.stage_after,
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_entry(row)

    def list_for_unit(self, unit_ref: str) -> list[AuditEntry]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(AuditRecord).where(AuditRecord.unit_ref == unit_ref).order_by(AuditRecord.id)
            ).all()
            return [_to_entry(r) for r in rows]

    def list_pending(self, resource_type: str) -> list[PendingReview]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(AuditRecord)
                .where(AuditRecord.resource_type == resource_type)
                .order_by(AuditRecord.id)
            ).all()
            return pending_from_entries((_to_entry(r) for r in rows), resource_type)
