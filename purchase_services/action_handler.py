"""
purchase_services.action_handler -- External action boundary.

Responsibility:
    The single entry point a host transport (HTTP route, RPC handler)
    calls.  Dispatches a named action to the executor or to the read-only
    and duplication paths, and converts workflow errors into the result
    envelope with a localized message.

Architecture position:
    Services layer, outermost.  Nothing above it in this repository.

Result envelope:
    ``{"status": "ok", "request": {...}}``
    ``{"status": "ok", "logs": [...], "timeline": [...]}`` for ``logs``
    ``{"status": "error", "kind": ..., "code": ..., "message": ...}``

Invariants enforced:
    - Every PurchaseWorkflowError becomes an error envelope; anything else
      is a defect and propagates.
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

from purchase_engines.timeline import build_timeline
from purchase_kernel.domain.audit import AuditPage, AuditQuery, TimelineGroup, TimelineOrder
from purchase_kernel.domain.collaborators import PermissionGate
from purchase_kernel.domain.purchase import Actor, Capability
from purchase_kernel.exceptions import PurchaseNotFoundError, PurchaseWorkflowError
from purchase_kernel.logging_config import LogContext, get_logger
from purchase_kernel.services.audit_recorder import AuditRecorder
from purchase_services.authorization import require_actor, require_capability
from purchase_services.error_messages import DEFAULT_LOCALE, message_for
from purchase_services.purchase_service import PurchaseService
from purchase_services.workflow_executor import WorkflowExecutor

logger = get_logger("services.action_handler")

ACTION_LOGS = "logs"
ACTION_DUPLICATE = "duplicate"


def parse_purchase_id(value: UUID | str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise PurchaseNotFoundError(str(value)) from None


def error_envelope(exc: PurchaseWorkflowError, locale: str = DEFAULT_LOCALE) -> dict[str, Any]:
    return {
        "status": "error",
        "kind": exc.kind.value,
        "code": exc.code,
        "message": message_for(exc, locale),
    }


def timeline_to_dict(group: TimelineGroup) -> dict[str, Any]:
    return {
        "step": group.step.value,
        "started_at": group.started_at.isoformat(),
        "ended_at": group.ended_at.isoformat(),
        "entry_ids": [e.id for e in group.entries],
    }


class PurchaseActionHandler:
    """Maps named actions to workflow operations and results to envelopes."""

    def __init__(
        self,
        executor: WorkflowExecutor,
        purchase_service: PurchaseService,
        recorder: AuditRecorder,
        permission_gate: PermissionGate,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        self._executor = executor
        self._purchases = purchase_service
        self._recorder = recorder
        self._gate = permission_gate
        self._locale = locale

    def handle_action(
        self,
        request_id: UUID | str,
        action: str,
        actor: Actor | None,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            purchase_id = parse_purchase_id(request_id)
            if action == ACTION_LOGS:
                return self._logs(purchase_id, actor)
            if action == ACTION_DUPLICATE:
                copy = self._purchases.duplicate(purchase_id, actor)
                return {"status": "ok", "request": copy.to_dict()}
            updated = self._executor.apply_action(purchase_id, action, actor, payload)
            return {"status": "ok", "request": updated.to_dict()}
        except PurchaseWorkflowError as exc:
            with LogContext.bind(
                purchase_id=str(request_id),
                actor_id=actor.id if actor is not None else None,
                action=str(action),
            ):
                logger.info(
                    "purchase_action_refused",
                    extra={"error_code": exc.code, "error_kind": exc.kind.value},
                )
            return error_envelope(exc, self._locale)

    def _logs(self, purchase_id: UUID, actor: Actor | None) -> dict[str, Any]:
        self._purchases.get(purchase_id, actor)
        entries = self._recorder.logs_for(purchase_id)
        timeline = build_timeline(entries, TimelineOrder.ASCENDING)
        return {
            "status": "ok",
            "logs": [e.to_dict() for e in entries],
            "timeline": [timeline_to_dict(g) for g in timeline],
        }

    def list_activity(self, query: AuditQuery, actor: Actor | None) -> AuditPage:
        """Cross-request audit listing; requires the view-all capability."""
        actor = require_actor(actor, "list_activity")
        require_capability(self._gate, actor, Capability.PURCHASE_VIEW_ALL)
        return self._recorder.list_entries(query)
