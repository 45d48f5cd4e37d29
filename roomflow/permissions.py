"""Review permission checks."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Protocol

from .constants import ADMIN_ROLE, DEFAULT_PERMISSIONS


class PermissionGate(Protocol):
    """Answers whether a role may review ``resource_type`` at ``stage``.

    Implementations are pure oracles: the engine asks before every approve or
    reject and never caches the answer.
    """

    def allows(self, role: str, resource_type: str, stage: int) -> bool:
        """Return ``True`` if ``role`` may act on ``stage``."""


class RoleMatrixGate:
    """Permission gate backed by a ``resource_type -> stage -> roles`` table."""

    def __init__(
        self,
        matrix: Optional[Mapping[str, Mapping[int, Iterable[str]]]] = None,
        superuser_roles: Iterable[str] = (ADMIN_ROLE,),
    ) -> None:
        source = DEFAULT_PERMISSIONS if matrix is None else matrix
        self._matrix: Dict[str, Dict[int, frozenset[str]]] = {
            resource: {int(stage): frozenset(roles) for stage, roles in stages.items()}
            for resource, stages in source.items()
        }
        self._superusers = frozenset(superuser_roles)

    def allows(self, role: str, resource_type: str, stage: int) -> bool:
        if role in self._superusers:
            return True
        return role in self._matrix.get(resource_type, {}).get(stage, frozenset())

    def roles_for(self, resource_type: str, stage: int) -> List[str]:
        return sorted(self._matrix.get(resource_type, {}).get(stage, frozenset()))


__all__ = ["PermissionGate", "RoleMatrixGate"]
