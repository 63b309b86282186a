"""
purchase_services.authorization -- Actor eligibility at the workflow boundary.

Responsibility:
    Decide whether an authenticated actor may perform an action on a
    specific purchase request: capability from the PermissionGate,
    ownership for owner-only actions, and pending-approver identity (by
    user id or by role via the RoleCapabilityResolver) for approver
    actions.

Architecture position:
    Services layer.  Called by WorkflowExecutor, PurchaseService and
    WorkflowConfigService before any write.

Invariants:
    - Role names are never compared here; role membership is always
      answered by the injected resolver.
    - ``purchase.approval_override`` lets an administrator act on a
      request they are not assigned to, but never skips the capability
      check itself.
"""

from __future__ import annotations

from purchase_kernel.domain.collaborators import PermissionGate, RoleCapabilityResolver
from purchase_kernel.domain.purchase import (
    APPROVER_ACTIONS,
    OWNER_ONLY_ACTIONS,
    Actor,
    Capability,
    PurchaseRequest,
    WorkflowAction,
)
from purchase_kernel.exceptions import (
    MissingCapabilityError,
    NotPendingApproverError,
    NotRequestOwnerError,
    UnauthenticatedError,
)

# action -> capability the gate must grant (None: ownership alone decides)
ACTION_CAPABILITY: dict[WorkflowAction, Capability | None] = {
    WorkflowAction.SUBMIT: None,
    WorkflowAction.WITHDRAW: None,
    WorkflowAction.CANCEL: None,
    WorkflowAction.APPROVE: Capability.PURCHASE_APPROVE,
    WorkflowAction.TRANSFER: Capability.PURCHASE_APPROVE,
    WorkflowAction.REJECT: Capability.PURCHASE_REJECT,
    WorkflowAction.PAY: Capability.PURCHASE_PAY,
    WorkflowAction.ISSUE: Capability.PURCHASE_PAY,
    WorkflowAction.RESOLVE_ISSUE: Capability.PURCHASE_PAY,
    WorkflowAction.SUBMIT_REIMBURSEMENT: None,
}


def require_actor(actor: Actor | None, action: str | None = None) -> Actor:
    if actor is None or not actor.id:
        raise UnauthenticatedError(action)
    return actor


def has_capability(gate: PermissionGate, actor: Actor, capability: Capability) -> bool:
    return bool(gate.check_permission(actor, capability.value))


def require_capability(gate: PermissionGate, actor: Actor, capability: Capability) -> None:
    if not has_capability(gate, actor, capability):
        raise MissingCapabilityError(actor.id, capability.value)


def is_pending_approver(
    request: PurchaseRequest,
    actor: Actor,
    resolver: RoleCapabilityResolver,
) -> bool:
    if request.pending_approver_id is not None:
        return request.pending_approver_id == actor.id
    if request.pending_approver_role is not None:
        return resolver.has_role(actor.id, request.pending_approver_role)
    return False


def authorize_action(
    request: PurchaseRequest,
    action: WorkflowAction,
    actor: Actor,
    gate: PermissionGate,
    resolver: RoleCapabilityResolver,
) -> None:
    """Raise an AuthorizationError subclass unless ``actor`` may act.

    Status legality is not checked here.
    """
    if action in OWNER_ONLY_ACTIONS:
        if not request.is_owned_by(actor.id):
            raise NotRequestOwnerError(actor.id, str(request.id), action.value)
        return

    if action == WorkflowAction.SUBMIT_REIMBURSEMENT:
        if actor.id not in (request.purchaser_id, request.creator_id):
            raise NotRequestOwnerError(actor.id, str(request.id), action.value)
        return

    capability = ACTION_CAPABILITY.get(action)
    if capability is not None:
        require_capability(gate, actor, capability)

    if action in APPROVER_ACTIONS:
        # Nothing assigned: the status check reports the real problem
        if not request.has_pending_assignment:
            return
        if is_pending_approver(request, actor, resolver):
            return
        if has_capability(gate, actor, Capability.APPROVAL_OVERRIDE):
            return
        raise NotPendingApproverError(
            actor.id,
            str(request.id),
            request.pending_approver_id,
            request.pending_approver_role,
        )
