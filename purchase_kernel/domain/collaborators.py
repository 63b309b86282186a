"""
Collaborator protocols.

The workflow consumes these interfaces and never implements the
underlying systems (permission catalog, employee directory, notification
transport).  Adapters live with the host application; tests supply fakes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Protocol

from purchase_kernel.domain.purchase import Actor, EmployeeSummary, PurchaseRequest
from purchase_kernel.domain.workflow import WorkflowConfig


class NotificationEvent(str, Enum):
    """Events emitted after a committed transition."""

    PURCHASE_SUBMITTED = "purchase_submitted"
    PURCHASE_APPROVED = "purchase_approved"
    PURCHASE_REJECTED = "purchase_rejected"
    PURCHASE_TRANSFERRED = "purchase_transferred"
    PURCHASE_WITHDRAWN = "purchase_withdrawn"
    REIMBURSEMENT_SUBMITTED = "reimbursement_submitted"
    PURCHASE_PAID = "purchase_paid"
    PAYMENT_ISSUE_MARKED = "payment_issue_marked"
    PAYMENT_ISSUE_RESOLVED = "payment_issue_resolved"


class PermissionGate(Protocol):
    """Black-box capability check."""

    def check_permission(self, actor: Actor, capability: str) -> bool:
        ...


class RoleCapabilityResolver(Protocol):
    """Answers role questions so the engine never compares role names itself."""

    def has_role(self, actor_id: str, role: str) -> bool:
        """True if the actor is an active holder of ``role``."""
        ...

    def is_approval_role(self, role: str | None) -> bool:
        """True if holders of ``role`` may be assigned approvals."""
        ...


class EmployeeDirectory(Protocol):

    def get_employee_by_id(self, employee_id: str) -> EmployeeSummary | None:
        ...

    def list_active_by_role(self, role: str) -> tuple[EmployeeSummary, ...]:
        ...


class NotificationDispatcher(Protocol):
    """Best-effort delivery.  May raise; callers must not let it escape."""

    def notify(
        self,
        event: NotificationEvent,
        request: PurchaseRequest,
        context: Mapping[str, Any],
    ) -> None:
        ...


class WorkflowConfigSource(Protocol):
    """Provides the current workflow configuration on every call."""

    def load_workflow_config(self) -> WorkflowConfig:
        ...
