"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any

from ..contracts import utc_now
from ..workflow import WorkflowInstance
from .repository import WorkflowRepository

_COLUMNS = "id, unit_ref, resource_type, status, document"


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflow state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                unit_ref TEXT NOT NULL,
                resource_type TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                document TEXT NOT NULL
            )
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS ix_workflows_unit_ref ON workflows (unit_ref)")
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Repository API
    async def save(self, instance: WorkflowInstance) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflows (id, unit_ref, resource_type, status, created_at, updated_at, document)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                status = excluded.status,
                updated_at = excluded.updated_at,
                document = excluded.document
            """,
            instance.id,
            instance.unit_ref,
            instance.resource_type,
            instance.pipeline.status.value,
            instance.created_at.isoformat(),
            utc_now().isoformat(),
            instance.model_dump_json(),
        )

    async def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {_COLUMNS} FROM workflows WHERE id = ?",
            workflow_id,
        )
        if not row:
            return None
        return WorkflowInstance.model_validate_json(row["document"])

    async def list_for_unit(self, unit_ref: str) -> list[WorkflowInstance]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {_COLUMNS} FROM workflows WHERE unit_ref = ? ORDER BY created_at",
            unit_ref,
        )
        return [WorkflowInstance.model_validate_json(r["document"]) for r in rows]

    async def list_workflows(
        self, resource_type: str | None = None, status: str | None = None
    ) -> list[WorkflowInstance]:
        query = f"SELECT {_COLUMNS} FROM workflows WHERE 1 = 1"
        params: list[Any] = []
        if resource_type is not None:
            query += " AND resource_type = ?"
            params.append(resource_type)
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        rows = await asyncio.to_thread(self._fetchall, query + " ORDER BY created_at", *params)
        return [WorkflowInstance.model_validate_json(r["document"]) for r in rows]
