"""
purchase_engines.timeline -- Audit trail composition.

Responsibility:
    Turn raw audit log entries into timeline groups for display, and
    check that a request's audit trail fully explains its current status.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``timeline_step`` is a pure function of (action, from, to); the same
      entries always render the same groups.
    - Entries are ordered by (created_at, id) before grouping, so insertion
      ties never reorder between renders.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from purchase_kernel.domain.audit import (
    AuditLogEntry,
    TimelineGroup,
    TimelineOrder,
    TimelineStep,
)
from purchase_kernel.domain.purchase import AuditAction, PurchaseStatus

_STEP_BY_ACTION: dict[AuditAction, TimelineStep] = {
    AuditAction.SUBMIT: TimelineStep.SUBMIT,
    AuditAction.APPROVE: TimelineStep.APPROVAL,
    AuditAction.REJECT: TimelineStep.APPROVAL,
    AuditAction.TRANSFER: TimelineStep.TRANSFER,
    AuditAction.WITHDRAW: TimelineStep.WITHDRAWAL,
    AuditAction.CANCEL: TimelineStep.CANCELLATION,
    AuditAction.SUBMIT_REIMBURSEMENT: TimelineStep.REIMBURSEMENT,
    AuditAction.PAY: TimelineStep.PAYMENT,
    AuditAction.ISSUE: TimelineStep.PAYMENT,
    AuditAction.RESOLVE: TimelineStep.PAYMENT,
}

_POST_APPROVAL = frozenset({
    PurchaseStatus.APPROVED,
    PurchaseStatus.PENDING_INBOUND,
})


def timeline_step(
    action: AuditAction,
    from_status: PurchaseStatus,
    to_status: PurchaseStatus,
) -> TimelineStep:
    """Map a transition to its display step.

    Older ledgers recorded reimbursement submissions as ``submit`` with
    an unchanged post-approval status; those map to REIMBURSEMENT.
    """
    if (
        action == AuditAction.SUBMIT
        and from_status in _POST_APPROVAL
        and to_status == from_status
    ):
        return TimelineStep.REIMBURSEMENT
    return _STEP_BY_ACTION[action]


def _sort_key(entry: AuditLogEntry):
    return (entry.created_at, entry.id)


def build_timeline(
    entries: Iterable[AuditLogEntry],
    order: TimelineOrder = TimelineOrder.ASCENDING,
) -> tuple[TimelineGroup, ...]:
    """Group consecutive entries that share a step.

    Ascending order serves per-request flow views; descending serves
    recent-activity views.  Grouping happens after ordering, so the two
    orders produce mirrored groups.
    """
    ordered = sorted(entries, key=_sort_key, reverse=order == TimelineOrder.DESCENDING)

    groups: list[TimelineGroup] = []
    current_step: TimelineStep | None = None
    bucket: list[AuditLogEntry] = []
    for entry in ordered:
        step = timeline_step(entry.action, entry.from_status, entry.to_status)
        if step != current_step and bucket:
            groups.append(TimelineGroup(step=current_step, entries=tuple(bucket)))
            bucket = []
        current_step = step
        bucket.append(entry)
    if bucket:
        groups.append(TimelineGroup(step=current_step, entries=tuple(bucket)))
    return tuple(groups)


@dataclass(frozen=True)
class ChainVerification:
    is_complete: bool
    problems: tuple[str, ...] = ()


def verify_status_chain(
    entries: Iterable[AuditLogEntry],
    initial_status: PurchaseStatus,
    current_status: PurchaseStatus,
) -> ChainVerification:
    """Check that the entries explain every status change.

    Each entry must start where the previous one ended, and the last
    entry must end at the request's current status.
    """
    problems: list[str] = []
    expected = initial_status
    for entry in sorted(entries, key=_sort_key):
        if entry.from_status != expected:
            problems.append(
                f"entry {entry.id} ({entry.action.value}) starts at "
                f"{entry.from_status.value}, expected {expected.value}"
            )
        expected = entry.to_status
    if expected != current_status:
        problems.append(
            f"trail ends at {expected.value} but request is {current_status.value}"
        )
    return ChainVerification(is_complete=not problems, problems=tuple(problems))
