"""
Purchase request domain types (``purchase_kernel.domain.purchase``).

Responsibility
--------------
Pure value objects for the purchase approval workflow: the request
lifecycle statuses, the actions that move a request between them, the
frozen request snapshot handed to callers, and the action payload.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* Lifecycle table -- ``ACTION_SOURCE_STATUSES`` lists the only statuses
  from which each action may start.  Terminal statuses (rejected, paid,
  cancelled) accept no transition.
* Decimal-only money -- quantity, unit price, fee, and paid-to-date are
  ``Decimal``; ``total_amount`` is derived, never stored.
* Pending assignment -- at most one of ``pending_approver_id`` and
  ``pending_approver_role`` is set, and only while pending approval.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

ZERO = Decimal("0")


# =========================================================================
# Lifecycle
# =========================================================================


class PurchaseStatus(str, Enum):
    """Purchase request lifecycle states."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PENDING_INBOUND = "pending_inbound"
    REJECTED = "rejected"
    PAID = "paid"
    CANCELLED = "cancelled"


TERMINAL_PURCHASE_STATUSES: frozenset[PurchaseStatus] = frozenset({
    PurchaseStatus.REJECTED,
    PurchaseStatus.PAID,
    PurchaseStatus.CANCELLED,
})


class ReimbursementStatus(str, Enum):
    """Reimbursement sub-status tracked in the extended profile."""

    NONE = "none"
    INVOICE_PENDING = "invoice_pending"
    REIMBURSEMENT_PENDING = "reimbursement_pending"
    REIMBURSEMENT_REJECTED = "reimbursement_rejected"
    REIMBURSED = "reimbursed"


class OrganizationType(str, Enum):
    """Organization branch a request belongs to."""

    SCHOOL = "school"
    COMPANY = "company"


class WorkflowProfile(str, Enum):
    """Deployment profile.

    ``simple`` ends approval at ``approved``; ``extended`` ends it at
    ``pending_inbound`` and tracks reimbursement.
    """

    SIMPLE = "simple"
    EXTENDED = "extended"


class WorkflowAction(str, Enum):
    """Actions that transition a purchase request."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    TRANSFER = "transfer"
    WITHDRAW = "withdraw"
    SUBMIT_REIMBURSEMENT = "submit_reimbursement"
    PAY = "pay"
    ISSUE = "issue"
    RESOLVE_ISSUE = "resolve_issue"
    CANCEL = "cancel"


class AuditAction(str, Enum):
    """Action names recorded on audit log entries."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    TRANSFER = "transfer"
    WITHDRAW = "withdraw"
    SUBMIT_REIMBURSEMENT = "submit_reimbursement"
    PAY = "pay"
    ISSUE = "issue"
    RESOLVE = "resolve"
    CANCEL = "cancel"


AUDIT_ACTION_FOR: dict[WorkflowAction, AuditAction] = {
    WorkflowAction.SUBMIT: AuditAction.SUBMIT,
    WorkflowAction.APPROVE: AuditAction.APPROVE,
    WorkflowAction.REJECT: AuditAction.REJECT,
    WorkflowAction.TRANSFER: AuditAction.TRANSFER,
    WorkflowAction.WITHDRAW: AuditAction.WITHDRAW,
    WorkflowAction.SUBMIT_REIMBURSEMENT: AuditAction.SUBMIT_REIMBURSEMENT,
    WorkflowAction.PAY: AuditAction.PAY,
    WorkflowAction.ISSUE: AuditAction.ISSUE,
    WorkflowAction.RESOLVE_ISSUE: AuditAction.RESOLVE,
    WorkflowAction.CANCEL: AuditAction.CANCEL,
}


ACTION_SOURCE_STATUSES: dict[WorkflowAction, frozenset[PurchaseStatus]] = {
    WorkflowAction.SUBMIT: frozenset({PurchaseStatus.DRAFT}),
    WorkflowAction.CANCEL: frozenset({PurchaseStatus.DRAFT}),
    WorkflowAction.APPROVE: frozenset({PurchaseStatus.PENDING_APPROVAL}),
    WorkflowAction.REJECT: frozenset({PurchaseStatus.PENDING_APPROVAL}),
    WorkflowAction.TRANSFER: frozenset({PurchaseStatus.PENDING_APPROVAL}),
    WorkflowAction.WITHDRAW: frozenset({PurchaseStatus.PENDING_APPROVAL}),
    WorkflowAction.SUBMIT_REIMBURSEMENT: frozenset({
        PurchaseStatus.APPROVED,
        PurchaseStatus.PENDING_INBOUND,
    }),
    WorkflowAction.PAY: frozenset({
        PurchaseStatus.APPROVED,
        PurchaseStatus.PENDING_INBOUND,
    }),
    WorkflowAction.ISSUE: frozenset({
        PurchaseStatus.APPROVED,
        PurchaseStatus.PENDING_INBOUND,
    }),
    WorkflowAction.RESOLVE_ISSUE: frozenset({
        PurchaseStatus.APPROVED,
        PurchaseStatus.PENDING_INBOUND,
    }),
}

REASON_REQUIRED_ACTIONS: frozenset[WorkflowAction] = frozenset({
    WorkflowAction.REJECT,
    WorkflowAction.WITHDRAW,
    WorkflowAction.TRANSFER,
    WorkflowAction.ISSUE,
})

OWNER_ONLY_ACTIONS: frozenset[WorkflowAction] = frozenset({
    WorkflowAction.SUBMIT,
    WorkflowAction.WITHDRAW,
    WorkflowAction.CANCEL,
})

APPROVER_ACTIONS: frozenset[WorkflowAction] = frozenset({
    WorkflowAction.APPROVE,
    WorkflowAction.REJECT,
    WorkflowAction.TRANSFER,
})

PAYMENT_ACTIONS: frozenset[WorkflowAction] = frozenset({
    WorkflowAction.PAY,
    WorkflowAction.ISSUE,
    WorkflowAction.RESOLVE_ISSUE,
})


class Capability(str, Enum):
    """Capability names passed to the permission gate."""

    PURCHASE_CREATE = "purchase.create"
    PURCHASE_APPROVE = "purchase.approve"
    PURCHASE_REJECT = "purchase.reject"
    PURCHASE_PAY = "purchase.pay"
    PURCHASE_VIEW_ALL = "purchase.view_all"
    APPROVAL_OVERRIDE = "purchase.approval_override"
    WORKFLOW_CONFIGURE = "workflow.configure"


# =========================================================================
# Actors
# =========================================================================


@dataclass(frozen=True)
class Actor:
    """An authenticated caller."""

    id: str
    name: str = ""


@dataclass(frozen=True)
class EmployeeSummary:
    """Directory record for an employee."""

    id: str
    name: str
    role: str | None = None
    department: str | None = None
    is_active: bool = True


# =========================================================================
# Request snapshot
# =========================================================================


def compute_total(quantity: Decimal, unit_price: Decimal, fee_amount: Decimal) -> Decimal:
    """total = quantity * unit_price + fee."""
    return quantity * unit_price + fee_amount


@dataclass(frozen=True)
class PurchaseRequest:
    """Immutable snapshot of a purchase request."""

    id: UUID
    purchase_number: str
    creator_id: str
    purchaser_id: str
    organization_type: OrganizationType
    item_name: str
    quantity: Decimal
    unit_price: Decimal
    fee_amount: Decimal = ZERO
    purpose: str = ""
    department: str | None = None
    status: PurchaseStatus = PurchaseStatus.DRAFT
    reimbursement_status: ReimbursementStatus = ReimbursementStatus.NONE
    pending_approver_id: str | None = None
    pending_approver_role: str | None = None
    workflow_node_id: str | None = None
    workflow_step_index: int | None = None
    paid_amount: Decimal = ZERO
    payment_issue_open: bool = False
    payment_issue_reason: str | None = None
    invoice_refs: tuple[str, ...] = ()
    submitted_at: datetime | None = None
    submitted_by: str | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    rejected_at: datetime | None = None
    rejected_by: str | None = None
    rejection_reason: str | None = None
    paid_at: datetime | None = None
    paid_by: str | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_amount(self) -> Decimal:
        return compute_total(self.quantity, self.unit_price, self.fee_amount)

    @property
    def remaining_amount(self) -> Decimal:
        return max(self.total_amount - self.paid_amount, ZERO)

    @property
    def is_fully_paid(self) -> bool:
        return self.remaining_amount <= ZERO

    @property
    def has_pending_assignment(self) -> bool:
        return self.pending_approver_id is not None or self.pending_approver_role is not None

    def is_owned_by(self, actor_id: str) -> bool:
        return actor_id == self.creator_id

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the external result envelope."""
        return {
            "id": str(self.id),
            "purchase_number": self.purchase_number,
            "creator_id": self.creator_id,
            "purchaser_id": self.purchaser_id,
            "organization_type": self.organization_type.value,
            "department": self.department,
            "item_name": self.item_name,
            "purpose": self.purpose,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "fee_amount": str(self.fee_amount),
            "total_amount": str(self.total_amount),
            "paid_amount": str(self.paid_amount),
            "remaining_amount": str(self.remaining_amount),
            "status": self.status.value,
            "reimbursement_status": self.reimbursement_status.value,
            "pending_approver_id": self.pending_approver_id,
            "pending_approver_role": self.pending_approver_role,
            "workflow_node_id": self.workflow_node_id,
            "workflow_step_index": self.workflow_step_index,
            "payment_issue_open": self.payment_issue_open,
            "payment_issue_reason": self.payment_issue_reason,
            "invoice_refs": list(self.invoice_refs),
            "submitted_at": _iso(self.submitted_at),
            "submitted_by": self.submitted_by,
            "approved_at": _iso(self.approved_at),
            "approved_by": self.approved_by,
            "rejected_at": _iso(self.rejected_at),
            "rejected_by": self.rejected_by,
            "rejection_reason": self.rejection_reason,
            "paid_at": _iso(self.paid_at),
            "paid_by": self.paid_by,
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class NewPurchase:
    """Fields supplied when a draft is created."""

    purchaser_id: str
    organization_type: str
    item_name: str
    quantity: Decimal
    unit_price: Decimal
    fee_amount: Decimal = ZERO
    purpose: str = ""
    department: str | None = None


# =========================================================================
# Action payload
# =========================================================================

REASON_KEYS = ("reason", "comment", "note")
TRANSFER_TARGET_KEYS = ("to_approver_id", "toApproverId", "target_approver_id")


def _first_present(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class ActionPayload:
    """Action-specific input.

    ``reason`` doubles as the approval comment.  ``amount`` is parsed but
    not validated here; range checks belong to the transition planner.
    """

    reason: str | None = None
    target_approver_id: str | None = None
    amount: Decimal | None = None
    invoice_refs: tuple[str, ...] = ()

    @property
    def normalized_reason(self) -> str | None:
        if self.reason is None:
            return None
        stripped = self.reason.strip()
        return stripped or None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ActionPayload:
        """Build a payload from loosely-typed caller input.

        ``comment`` and then ``note`` stand in for a missing ``reason``;
        the transfer target may be given as ``to_approver_id``,
        ``toApproverId`` or ``target_approver_id``.  An unparseable amount
        is kept as ``Decimal("NaN")`` so the planner rejects it.
        """
        if not data:
            return cls()
        reason = _first_present(data, REASON_KEYS)
        target = _first_present(data, TRANSFER_TARGET_KEYS)
        amount_raw = data.get("amount")
        amount: Decimal | None = None
        if amount_raw is not None and amount_raw != "":
            try:
                amount = Decimal(str(amount_raw))
            except InvalidOperation:
                amount = Decimal("NaN")
        refs = data.get("invoice_refs") or ()
        return cls(
            reason=str(reason) if reason is not None else None,
            target_approver_id=str(target) if target is not None else None,
            amount=amount,
            invoice_refs=tuple(str(r) for r in refs),
        )
