"""Workflow repositories and the URL-driven factory that picks one."""

from __future__ import annotations

from typing import Optional

from ..config import RoomflowConfig
from ..utils.backends import BackendCache
from .inmemory import InMemoryWorkflowRepository
from .repository import WorkflowRepository
from .sqlite import SQLiteWorkflowRepository

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresWorkflowRepository
except ImportError:  # pragma: no cover - optional dependency
    PostgresWorkflowRepository = None  # type: ignore


def open_repository(database_url: Optional[str]) -> WorkflowRepository:
    """Open the repository ``database_url`` points at.

    ``sqlite://<path>`` opens a document table in that file, ``postgres://``
    and ``postgresql://`` DSNs use asyncpg, and an empty URL keeps workflows
    in memory.
    """
    if not database_url:
        return InMemoryWorkflowRepository()
    scheme, _, location = database_url.partition("://")
    if scheme == "sqlite" and location:
        return SQLiteWorkflowRepository(location)
    if scheme in ("postgres", "postgresql"):
        if PostgresWorkflowRepository is None:
            raise RuntimeError("Postgres support not available; install roomflow[postgres]")
        return PostgresWorkflowRepository(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


_repositories: BackendCache[WorkflowRepository] = BackendCache(open_repository, "database_url")


def get_repository(
    database_url: Optional[str] = None, config: Optional[RoomflowConfig] = None
) -> WorkflowRepository:
    """Repository for ``database_url`` or ``config.database_url``.

    Without either, the last opened repository is returned, or one is opened
    from the loaded configuration.
    """
    return _repositories.get(database_url, config)


def use_repository(repository: WorkflowRepository, database_url: Optional[str] = None) -> WorkflowRepository:
    """Make ``repository`` the one ``get_repository`` hands out for ``database_url``."""
    return _repositories.use(repository, database_url)


__all__ = [
    "WorkflowRepository",
    "SQLiteWorkflowRepository",
    "PostgresWorkflowRepository",
    "InMemoryWorkflowRepository",
    "get_repository",
    "open_repository",
    "use_repository",
]
