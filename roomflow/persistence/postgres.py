"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

from typing import Any

import asyncpg

from ..contracts import utc_now
from ..workflow import WorkflowInstance
from .repository import WorkflowRepository


class PostgresWorkflowRepository(WorkflowRepository):
    """Persist workflow state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                unit_ref TEXT NOT NULL,
                resource_type TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL,
                document JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS ix_workflows_unit_ref ON workflows (unit_ref)"
        )

    # ------------------------------------------------------------------
    async def save(self, instance: WorkflowInstance) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO workflows (id, unit_ref, resource_type, status, created_at, updated_at, document)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (id) DO UPDATE SET
                    status = EXCLUDED.status,
                    updated_at = EXCLUDED.updated_at,
                    document = EXCLUDED.document
                """,
                instance.id,
                instance.unit_ref,
                instance.resource_type,
                instance.pipeline.status.value,
                instance.created_at,
                utc_now(),
                instance.model_dump_json(),
            )
        finally:
            await conn.close()

    async def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT document FROM workflows WHERE id = $1", workflow_id
            )
        finally:
            await conn.close()
        if not row:
            return None
        return WorkflowInstance.model_validate_json(row["document"])

    async def list_for_unit(self, unit_ref: str) -> list[WorkflowInstance]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT document FROM workflows WHERE unit_ref = $1 ORDER BY created_at",
                unit_ref,
            )
        finally:
            await conn.close()
        return [WorkflowInstance.model_validate_json(r["document"]) for r in rows]

    async def list_workflows(
        self, resource_type: str | None = None, status: str | None = None
    ) -> list[WorkflowInstance]:
        query = "SELECT document FROM workflows WHERE 1 = 1"
        params: list[Any] = []
        if resource_type is not None:
            params.append(resource_type)
            query += f" AND resource_type = ${len(params)}"
        if status is not None:
            params.append(status)
            query += f" AND status = ${len(params)}"
        conn = await self._connect()
        try:
            rows = await conn.fetch(query + " ORDER BY created_at", *params)
        finally:
            await conn.close()
        return [WorkflowInstance.model_validate_json(r["document"]) for r in rows]
