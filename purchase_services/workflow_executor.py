"""
purchase_services.workflow_executor -- Purchase request transition execution.

Responsibility:
    Applies one workflow action to one purchase request.  Thin
    coordinator: eligibility goes to ``authorization``, legality and the
    effect of the transition to the pure ``purchase_engines`` planner,
    persistence to PurchaseStore / AuditRecorder, delivery to
    PurchaseNotifier.

Architecture position:
    Services layer.  May import from purchase_engines/ (pure engines),
    purchase_kernel/ (domain, services, models) and purchase_config/.

Invariants enforced:
    - Preconditions are checked in a fixed order and all of them run
      before the first write: request exists, actor authenticated,
      mandatory reason present (checked only where the status permits the
      action, so illegal actions stay InvalidTransition), actor eligible,
      status permits the action, payload valid, an approver can be
      resolved.
    - At most one winner per request per overlapping attempt: the update
      is a compare-and-set on (id, status, version); the loser receives
      ConcurrentTransitionError (an InvalidTransition).
    - The request update and its audit entry commit together or roll
      back together.
    - Notification runs strictly after commit and never fails the call.
    - The workflow configuration is read fresh for every action.
"""

from __future__ import annotations

import time
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from purchase_config.settings import EngineSettings
from purchase_engines.node_resolution import fallback_node, resolve_applicable_nodes
from purchase_engines.transitions import (
    TransitionPlan,
    check_transfer_target,
    ensure_action_allowed,
    is_action_allowed,
    plan_transition,
    require_reason,
)
from purchase_kernel.domain.clock import Clock, SystemClock
from purchase_kernel.domain.collaborators import (
    EmployeeDirectory,
    PermissionGate,
    RoleCapabilityResolver,
    WorkflowConfigSource,
)
from purchase_kernel.domain.purchase import (
    AUDIT_ACTION_FOR,
    ActionPayload,
    Actor,
    PurchaseRequest,
    WorkflowAction,
)
from purchase_kernel.domain.workflow import ApprovalNode, ApproverType
from purchase_kernel.exceptions import (
    ConcurrentTransitionError,
    NoApplicableApproverError,
    TransferTargetNotApproverError,
    TransferTargetNotFoundError,
    UnknownActionError,
)
from purchase_kernel.logging_config import LogContext, get_logger
from purchase_kernel.services.audit_recorder import AuditRecorder
from purchase_kernel.services.purchase_store import PurchaseStore
from purchase_services.authorization import authorize_action, require_actor
from purchase_services.notification import PurchaseNotifier
from purchase_services.role_resolver import active_holders
from purchase_services.unit_of_work import unit_of_work

logger = get_logger("services.workflow_executor")


def parse_action(action: WorkflowAction | str) -> WorkflowAction:
    if isinstance(action, WorkflowAction):
        return action
    try:
        return WorkflowAction(str(action).strip().lower())
    except ValueError:
        raise UnknownActionError(str(action)) from None


class WorkflowExecutor:
    """Applies workflow actions to purchase requests."""

    def __init__(
        self,
        session: Session,
        permission_gate: PermissionGate,
        role_resolver: RoleCapabilityResolver,
        directory: EmployeeDirectory,
        config_source: WorkflowConfigSource,
        notifier: PurchaseNotifier | None = None,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ) -> None:
        self._session = session
        self._gate = permission_gate
        self._resolver = role_resolver
        self._directory = directory
        self._config_source = config_source
        self._settings = settings or EngineSettings()
        self._notifier = notifier or PurchaseNotifier(None, self._settings.notify_policy)
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._policy = self._settings.transition_policy()
        self._store = PurchaseStore(session)
        self._recorder = AuditRecorder(session)

    def apply_action(
        self,
        purchase_id: UUID,
        action: WorkflowAction | str,
        actor: Actor | None,
        payload: ActionPayload | Mapping[str, Any] | None = None,
    ) -> PurchaseRequest:
        """Apply ``action`` and return the committed request.

        Raises:
            PurchaseWorkflowError subclasses; nothing is written when one
            is raised.
        """
        action = parse_action(action)
        if not isinstance(payload, ActionPayload):
            payload = ActionPayload.from_mapping(payload)

        with LogContext.bind(
            purchase_id=str(purchase_id),
            actor_id=actor.id if actor is not None else None,
            action=action.value,
        ):
            start = time.monotonic()
            request = self._store.get(purchase_id)
            actor = require_actor(actor, action.value)
            if is_action_allowed(request, action, self._policy):
                require_reason(action, payload)
            authorize_action(request, action, actor, self._gate, self._resolver)
            ensure_action_allowed(request, action, self._policy)
            if action == WorkflowAction.TRANSFER:
                self._check_transfer_target(actor, payload)

            now = self._clock.now()
            nodes = self._applicable_nodes(request)
            plan = plan_transition(request, action, actor.id, payload, nodes, self._policy, now)
            changes = self._resolve_assignment(request, plan)

            with unit_of_work(self._session, self._auto_commit):
                updated = self._store.compare_and_set(
                    request.id, request.status, request.version, changes, now,
                )
                if updated is None:
                    raise ConcurrentTransitionError(
                        str(request.id), action.value, request.status.value,
                    )
                self._recorder.append(
                    purchase_id=request.id,
                    action=AUDIT_ACTION_FOR[action],
                    from_status=plan.from_status,
                    to_status=plan.to_status,
                    operator=actor,
                    created_at=now,
                    comment=plan.comment,
                )

            logger.info(
                "purchase_transition_applied",
                extra={
                    "purchase_number": updated.purchase_number,
                    "from_status": plan.from_status.value,
                    "to_status": plan.to_status.value,
                    "pending_approver_id": updated.pending_approver_id,
                    "pending_approver_role": updated.pending_approver_role,
                    "workflow_node_id": updated.workflow_node_id,
                    "version": updated.version,
                    "duration_ms": round((time.monotonic() - start) * 1000, 3),
                },
            )

            if plan.notification is not None:
                self._notifier.send(
                    plan.notification,
                    updated,
                    {
                        "actor_id": actor.id,
                        "action": action.value,
                        "comment": plan.comment,
                        "payment_amount": (
                            str(plan.payment_amount)
                            if plan.payment_amount is not None
                            else None
                        ),
                    },
                )
        return updated

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_transfer_target(self, actor: Actor, payload: ActionPayload) -> None:
        target_id = check_transfer_target(actor.id, payload)
        employee = self._directory.get_employee_by_id(target_id)
        if employee is None or not employee.is_active:
            raise TransferTargetNotFoundError(target_id)
        if not self._resolver.is_approval_role(employee.role):
            raise TransferTargetNotApproverError(target_id, employee.role)

    def _applicable_nodes(self, request: PurchaseRequest) -> tuple[ApprovalNode, ...]:
        config = self._config_source.load_workflow_config()
        nodes = resolve_applicable_nodes(
            config, request.organization_type, request.total_amount,
        )
        role = self._settings.fallback_approver_role
        if not nodes and role:
            logger.info(
                "workflow_fallback_approver_used",
                extra={"config_version": config.version, "fallback_role": role},
            )
            return (fallback_node(role),)
        return nodes

    def _resolve_assignment(
        self,
        request: PurchaseRequest,
        plan: TransitionPlan,
    ) -> dict[str, Any]:
        """Check a role node has an active holder; optionally pick one."""
        changes = dict(plan.changes)
        node = plan.assigned_node
        if node is None or node.approver_type != ApproverType.ROLE:
            return changes

        holders = active_holders(self._directory, node.approver_role, request.department)
        if not holders:
            raise NoApplicableApproverError(str(request.id), node.id, node.approver_role)
        if self._settings.resolve_role_to_user:
            changes["pending_approver_id"] = holders[0].id
            changes["pending_approver_role"] = None
        return changes
