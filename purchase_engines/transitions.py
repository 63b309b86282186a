"""
purchase_engines.transitions -- Pure purchase request state machine.

Responsibility:
    Decide whether an action is legal for a request's current state and,
    if so, compute the complete effect of the transition: the new status,
    every column that changes, the audit comment, and the notification
    to emit.  Nothing is persisted here.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import purchase_kernel/domain/ types, purchase_kernel.exceptions
    and sibling engine modules.

Invariants enforced:
    - Status/action soundness: ``ACTION_SOURCE_STATUSES`` plus the
      deployment policy are the only source of legality.  Terminal
      statuses accept nothing.
    - Reason-mandatory actions (reject, withdraw, transfer, issue) never
      plan with an empty or whitespace-only reason.
    - Pending assignment: set iff the planned status is pending_approval.
    - Payments accumulate; status becomes ``paid`` only when the
      remaining balance reaches zero.
    - Purity: the caller passes ``now``; no clock access.

Failure modes:
    - InvalidTransitionError when the action is not legal from the status.
    - ReasonRequiredError, SelfTransferError, TransferTargetRequiredError,
      InvalidPaymentAmountError, PaymentExceedsRemainingError,
      InvoiceRequiredError on malformed payloads.
    - NoApplicableApproverError when submit finds no applicable node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from purchase_engines.node_resolution import (
    approver_target,
    current_node,
    first_applicable_node,
    next_applicable_node,
)
from purchase_kernel.domain.collaborators import NotificationEvent
from purchase_kernel.domain.purchase import (
    ACTION_SOURCE_STATUSES,
    REASON_REQUIRED_ACTIONS,
    TERMINAL_PURCHASE_STATUSES,
    ActionPayload,
    PurchaseRequest,
    PurchaseStatus,
    ReimbursementStatus,
    WorkflowAction,
    WorkflowProfile,
)
from purchase_kernel.domain.workflow import ApprovalMode, ApprovalNode
from purchase_kernel.exceptions import (
    InvalidPaymentAmountError,
    InvalidTransitionError,
    InvoiceRequiredError,
    NoApplicableApproverError,
    PaymentExceedsRemainingError,
    ReasonRequiredError,
    SelfTransferError,
    TransferTargetRequiredError,
)

ZERO = Decimal("0")


@dataclass(frozen=True)
class TransitionPolicy:
    """Deployment switches that change what the state machine permits."""

    profile: WorkflowProfile = WorkflowProfile.SIMPLE
    payment_enabled: bool = True
    reimbursement_enabled: bool = False
    withdraw_target: PurchaseStatus = PurchaseStatus.CANCELLED

    @property
    def final_approval_status(self) -> PurchaseStatus:
        if self.profile == WorkflowProfile.EXTENDED:
            return PurchaseStatus.PENDING_INBOUND
        return PurchaseStatus.APPROVED


class BlockedReason(str, Enum):
    """Why an action is not legal right now."""

    STATUS = "status"
    PROFILE = "profile"
    PAYMENT_DISABLED = "payment_disabled"
    REIMBURSEMENT_DISABLED = "reimbursement_disabled"
    REIMBURSEMENT_NOT_READY = "reimbursement_not_ready"
    REIMBURSEMENT_NOT_SUBMITTED = "reimbursement_not_submitted"
    PAYMENT_ISSUE_OPEN = "payment_issue_open"
    PAYMENT_ISSUE_NOT_OPEN = "payment_issue_not_open"
    FULLY_PAID = "fully_paid"


@dataclass(frozen=True)
class TransitionPlan:
    """Everything a transition will change, computed before any write."""

    action: WorkflowAction
    from_status: PurchaseStatus
    to_status: PurchaseStatus
    changes: dict[str, Any] = field(default_factory=dict)
    comment: str | None = None
    assigned_node: ApprovalNode | None = None
    notification: NotificationEvent | None = None
    payment_amount: Decimal | None = None


# =========================================================================
# Legality
# =========================================================================


def blocked_reason(
    request: PurchaseRequest,
    action: WorkflowAction,
    policy: TransitionPolicy,
) -> BlockedReason | None:
    """None if ``action`` is legal for ``request``; otherwise why not."""
    status = request.status
    if status in TERMINAL_PURCHASE_STATUSES:
        return BlockedReason.STATUS
    if status not in ACTION_SOURCE_STATUSES.get(action, frozenset()):
        return BlockedReason.STATUS
    if (
        status == PurchaseStatus.PENDING_INBOUND
        and policy.profile != WorkflowProfile.EXTENDED
    ):
        return BlockedReason.PROFILE

    if action == WorkflowAction.PAY:
        if not policy.payment_enabled:
            return BlockedReason.PAYMENT_DISABLED
        if request.payment_issue_open:
            return BlockedReason.PAYMENT_ISSUE_OPEN
        if request.is_fully_paid:
            return BlockedReason.FULLY_PAID
        if (
            policy.reimbursement_enabled
            and request.reimbursement_status != ReimbursementStatus.REIMBURSEMENT_PENDING
        ):
            return BlockedReason.REIMBURSEMENT_NOT_SUBMITTED

    elif action == WorkflowAction.SUBMIT_REIMBURSEMENT:
        if not policy.reimbursement_enabled:
            return BlockedReason.REIMBURSEMENT_DISABLED
        if request.reimbursement_status not in (
            ReimbursementStatus.INVOICE_PENDING,
            ReimbursementStatus.REIMBURSEMENT_REJECTED,
        ):
            return BlockedReason.REIMBURSEMENT_NOT_READY

    elif action == WorkflowAction.ISSUE:
        if not policy.payment_enabled:
            return BlockedReason.PAYMENT_DISABLED
        if request.payment_issue_open:
            return BlockedReason.PAYMENT_ISSUE_OPEN
        if request.is_fully_paid:
            return BlockedReason.FULLY_PAID

    elif action == WorkflowAction.RESOLVE_ISSUE:
        if not request.payment_issue_open:
            return BlockedReason.PAYMENT_ISSUE_NOT_OPEN

    return None


def is_action_allowed(
    request: PurchaseRequest,
    action: WorkflowAction,
    policy: TransitionPolicy,
) -> bool:
    return blocked_reason(request, action, policy) is None


def allowed_actions(
    request: PurchaseRequest,
    policy: TransitionPolicy,
) -> tuple[WorkflowAction, ...]:
    """Actions legal from the request's state, ignoring who the actor is."""
    return tuple(a for a in WorkflowAction if is_action_allowed(request, a, policy))


def ensure_action_allowed(
    request: PurchaseRequest,
    action: WorkflowAction,
    policy: TransitionPolicy,
) -> None:
    reason = blocked_reason(request, action, policy)
    if reason is not None:
        raise InvalidTransitionError(action.value, request.status.value, reason.value)


# =========================================================================
# Payload checks
# =========================================================================


def require_reason(action: WorkflowAction, payload: ActionPayload) -> str | None:
    """Return the trimmed reason, raising if the action needs one and it is blank."""
    reason = payload.normalized_reason
    if action in REASON_REQUIRED_ACTIONS and reason is None:
        raise ReasonRequiredError(action.value)
    return reason


def check_transfer_target(actor_id: str, payload: ActionPayload) -> str:
    """Shape checks on the transfer target.  Existence is the caller's job."""
    target = (payload.target_approver_id or "").strip()
    if not target:
        raise TransferTargetRequiredError()
    if target == actor_id:
        raise SelfTransferError(actor_id)
    return target


def resolve_payment_amount(request: PurchaseRequest, amount: Decimal | None) -> Decimal:
    """Missing amount means pay the whole remaining balance."""
    remaining = request.remaining_amount
    if amount is None:
        amount = remaining
    if not amount.is_finite() or amount <= ZERO:
        raise InvalidPaymentAmountError(str(amount))
    if amount > remaining:
        raise PaymentExceedsRemainingError(str(amount), str(remaining))
    return amount


# =========================================================================
# Planning
# =========================================================================


def _assignment_changes(node: ApprovalNode, index: int) -> dict[str, Any]:
    target = approver_target(node)
    return {
        "pending_approver_id": target.approver_id,
        "pending_approver_role": target.approver_role,
        "workflow_node_id": node.id,
        "workflow_step_index": index,
    }


_CLEARED_ASSIGNMENT: dict[str, Any] = {
    "pending_approver_id": None,
    "pending_approver_role": None,
    "workflow_node_id": None,
    "workflow_step_index": None,
}


def plan_transition(
    request: PurchaseRequest,
    action: WorkflowAction,
    actor_id: str,
    payload: ActionPayload,
    nodes: tuple[ApprovalNode, ...],
    policy: TransitionPolicy,
    now: datetime,
) -> TransitionPlan:
    """Compute the full effect of ``action`` on ``request``.

    Args:
        request: Snapshot read at the start of the action.
        action: Requested action.
        actor_id: Who is acting (already authorized by the caller).
        payload: Action input.
        nodes: Applicable approval nodes, resolved from the configuration
            read for this action.
        policy: Deployment switches.
        now: Timestamp for every time column written.

    Returns:
        TransitionPlan with the target status and column changes.
    """
    ensure_action_allowed(request, action, policy)
    reason = require_reason(action, payload)
    from_status = request.status

    if action == WorkflowAction.SUBMIT:
        node = first_applicable_node(nodes)
        if node is None:
            raise NoApplicableApproverError(str(request.id))
        changes = {
            "status": PurchaseStatus.PENDING_APPROVAL,
            **_assignment_changes(node, 0),
            "submitted_at": now,
            "submitted_by": actor_id,
            "approved_at": None,
            "approved_by": None,
            "rejected_at": None,
            "rejected_by": None,
            "rejection_reason": None,
        }
        return TransitionPlan(
            action=action,
            from_status=from_status,
            to_status=PurchaseStatus.PENDING_APPROVAL,
            changes=changes,
            comment=reason,
            assigned_node=node,
            notification=NotificationEvent.PURCHASE_SUBMITTED,
        )

    if action == WorkflowAction.APPROVE:
        return _plan_approve(request, actor_id, reason, nodes, policy, now)

    if action == WorkflowAction.REJECT:
        return TransitionPlan(
            action=action,
            from_status=from_status,
            to_status=PurchaseStatus.REJECTED,
            changes={
                "status": PurchaseStatus.REJECTED,
                **_CLEARED_ASSIGNMENT,
                "rejected_at": now,
                "rejected_by": actor_id,
                "rejection_reason": reason,
            },
            comment=reason,
            notification=NotificationEvent.PURCHASE_REJECTED,
        )

    if action == WorkflowAction.TRANSFER:
        target = check_transfer_target(actor_id, payload)
        return TransitionPlan(
            action=action,
            from_status=from_status,
            to_status=PurchaseStatus.PENDING_APPROVAL,
            changes={
                "pending_approver_id": target,
                "pending_approver_role": None,
            },
            comment=reason,
            notification=NotificationEvent.PURCHASE_TRANSFERRED,
        )

    if action == WorkflowAction.WITHDRAW:
        return TransitionPlan(
            action=action,
            from_status=from_status,
            to_status=policy.withdraw_target,
            changes={"status": policy.withdraw_target, **_CLEARED_ASSIGNMENT},
            comment=reason,
            notification=NotificationEvent.PURCHASE_WITHDRAWN,
        )

    if action == WorkflowAction.CANCEL:
        return TransitionPlan(
            action=action,
            from_status=from_status,
            to_status=PurchaseStatus.CANCELLED,
            changes={"status": PurchaseStatus.CANCELLED},
            comment=reason,
        )

    if action == WorkflowAction.SUBMIT_REIMBURSEMENT:
        refs = tuple(dict.fromkeys(request.invoice_refs + payload.invoice_refs))
        if not refs:
            raise InvoiceRequiredError()
        return TransitionPlan(
            action=action,
            from_status=from_status,
            to_status=from_status,
            changes={
                "reimbursement_status": ReimbursementStatus.REIMBURSEMENT_PENDING,
                "invoice_refs": refs,
            },
            comment=reason,
            notification=NotificationEvent.REIMBURSEMENT_SUBMITTED,
        )

    if action == WorkflowAction.PAY:
        return _plan_pay(request, actor_id, payload, reason, policy, now)

    if action == WorkflowAction.ISSUE:
        return TransitionPlan(
            action=action,
            from_status=from_status,
            to_status=from_status,
            changes={"payment_issue_open": True, "payment_issue_reason": reason},
            comment=reason,
            notification=NotificationEvent.PAYMENT_ISSUE_MARKED,
        )

    if action == WorkflowAction.RESOLVE_ISSUE:
        return TransitionPlan(
            action=action,
            from_status=from_status,
            to_status=from_status,
            changes={"payment_issue_open": False, "payment_issue_reason": None},
            comment=reason,
            notification=NotificationEvent.PAYMENT_ISSUE_RESOLVED,
        )

    raise InvalidTransitionError(action.value, from_status.value)


def _plan_approve(
    request: PurchaseRequest,
    actor_id: str,
    reason: str | None,
    nodes: tuple[ApprovalNode, ...],
    policy: TransitionPolicy,
    now: datetime,
) -> TransitionPlan:
    node = current_node(nodes, request.workflow_node_id, request.workflow_step_index)
    if node is not None and node.required_comment and reason is None:
        raise ReasonRequiredError(WorkflowAction.APPROVE.value)

    mode = node.approval_mode if node is not None else ApprovalMode.SERIAL
    advance = None
    if mode == ApprovalMode.SERIAL:
        advance = next_applicable_node(
            nodes, request.workflow_node_id, request.workflow_step_index,
        )

    if advance is not None:
        index, next_node = advance
        return TransitionPlan(
            action=WorkflowAction.APPROVE,
            from_status=request.status,
            to_status=PurchaseStatus.PENDING_APPROVAL,
            changes=_assignment_changes(next_node, index),
            comment=reason,
            assigned_node=next_node,
            notification=NotificationEvent.PURCHASE_SUBMITTED,
        )

    final_status = policy.final_approval_status
    changes: dict[str, Any] = {
        "status": final_status,
        **_CLEARED_ASSIGNMENT,
        "approved_at": now,
        "approved_by": actor_id,
    }
    if policy.reimbursement_enabled:
        changes["reimbursement_status"] = ReimbursementStatus.INVOICE_PENDING
    return TransitionPlan(
        action=WorkflowAction.APPROVE,
        from_status=request.status,
        to_status=final_status,
        changes=changes,
        comment=reason,
        notification=NotificationEvent.PURCHASE_APPROVED,
    )


def _plan_pay(
    request: PurchaseRequest,
    actor_id: str,
    payload: ActionPayload,
    reason: str | None,
    policy: TransitionPolicy,
    now: datetime,
) -> TransitionPlan:
    amount = resolve_payment_amount(request, payload.amount)
    new_paid = request.paid_amount + amount
    fully_paid = new_paid >= request.total_amount

    changes: dict[str, Any] = {"paid_amount": new_paid}
    to_status = request.status
    if fully_paid:
        to_status = PurchaseStatus.PAID
        changes["status"] = PurchaseStatus.PAID
        changes["paid_at"] = now
        changes["paid_by"] = actor_id
        if policy.reimbursement_enabled:
            changes["reimbursement_status"] = ReimbursementStatus.REIMBURSED

    return TransitionPlan(
        action=WorkflowAction.PAY,
        from_status=request.status,
        to_status=to_status,
        changes=changes,
        comment=reason or f"Paid {amount}",
        notification=NotificationEvent.PURCHASE_PAID,
        payment_amount=amount,
    )
