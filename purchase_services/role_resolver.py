"""
purchase_services.role_resolver -- Directory-backed role questions.

Answers ``has_role`` / ``is_approval_role`` from an EmployeeDirectory and
the configured set of approval roles, so the executor never compares
role names itself.  Hosts with their own role service may inject any
other RoleCapabilityResolver instead.
"""

from __future__ import annotations

from typing import Iterable

from purchase_kernel.domain.collaborators import EmployeeDirectory
from purchase_kernel.domain.purchase import EmployeeSummary


class DirectoryRoleResolver:
    """RoleCapabilityResolver over an EmployeeDirectory."""

    def __init__(self, directory: EmployeeDirectory, approval_roles: Iterable[str]) -> None:
        self._directory = directory
        self._approval_roles = frozenset(approval_roles)

    def has_role(self, actor_id: str, role: str) -> bool:
        return any(e.id == actor_id for e in self._directory.list_active_by_role(role))

    def is_approval_role(self, role: str | None) -> bool:
        return role is not None and role in self._approval_roles


def active_holders(
    directory: EmployeeDirectory,
    role: str,
    preferred_department: str | None = None,
) -> tuple[EmployeeSummary, ...]:
    """Active holders of ``role``, those in ``preferred_department`` first.

    Ties keep the directory's order.
    """
    holders = tuple(e for e in directory.list_active_by_role(role) if e.is_active)
    if preferred_department is None:
        return holders
    return tuple(
        sorted(holders, key=lambda e: e.department != preferred_department)
    )
