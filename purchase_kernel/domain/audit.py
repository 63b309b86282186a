"""
Audit trail domain types.

Pure value objects for audit log entries, timeline groups, and the
cross-request audit listing query/page.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from purchase_kernel.domain.purchase import AuditAction, PurchaseStatus

DEFAULT_AUDIT_PAGE_SIZE = 30
MAX_AUDIT_PAGE_SIZE = 200


@dataclass(frozen=True)
class AuditLogEntry:
    """One successful transition.  Immutable once recorded."""

    id: int
    purchase_id: UUID
    action: AuditAction
    from_status: PurchaseStatus
    to_status: PurchaseStatus
    operator_id: str
    created_at: datetime
    operator_name: str = ""
    comment: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "purchase_id": str(self.purchase_id),
            "action": self.action.value,
            "from_status": self.from_status.value,
            "to_status": self.to_status.value,
            "operator_id": self.operator_id,
            "operator_name": self.operator_name,
            "comment": self.comment,
            "created_at": self.created_at.isoformat(),
        }


class TimelineStep(str, Enum):
    """Coarse timeline step an entry is grouped under."""

    SUBMIT = "submit"
    APPROVAL = "approval"
    TRANSFER = "transfer"
    WITHDRAWAL = "withdrawal"
    CANCELLATION = "cancellation"
    REIMBURSEMENT = "reimbursement"
    PAYMENT = "payment"


class TimelineOrder(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


@dataclass(frozen=True)
class TimelineGroup:
    """Consecutive entries belonging to the same step."""

    step: TimelineStep
    entries: tuple[AuditLogEntry, ...]

    @property
    def started_at(self) -> datetime:
        return min(e.created_at for e in self.entries)

    @property
    def ended_at(self) -> datetime:
        return max(e.created_at for e in self.entries)


@dataclass(frozen=True)
class AuditQuery:
    """Filters for the cross-request audit listing."""

    search: str | None = None
    actions: tuple[AuditAction, ...] = ()
    operator_id: str | None = None
    purchase_ids: tuple[UUID, ...] = ()
    start: datetime | None = None
    end: datetime | None = None
    page: int = 1
    page_size: int = DEFAULT_AUDIT_PAGE_SIZE

    @property
    def effective_page(self) -> int:
        return max(self.page, 1)

    @property
    def effective_page_size(self) -> int:
        return min(max(self.page_size, 1), MAX_AUDIT_PAGE_SIZE)


@dataclass(frozen=True)
class AuditPage:
    items: tuple[AuditLogEntry, ...]
    total: int
    page: int
    page_size: int
