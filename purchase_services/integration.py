"""
Integration entrypoint for host applications.

Wires the workflow services from EngineSettings and the host's
collaborator adapters, so a transport layer needs only::

    from purchase_config.settings import load_settings
    from purchase_services.integration import (
        HostCollaborators,
        handle_action_in_scope,
        open_database,
    )

    settings = load_settings()
    open_database(settings)
    host = HostCollaborators(permission_gate=gate, directory=directory,
                             dispatcher=mailer)
    result = handle_action_in_scope(host, settings, request_id, "approve",
                                    actor, {"comment": "ok"})

Each call to ``handle_action_in_scope`` runs in its own session, so one
web request maps to one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from purchase_config.settings import EngineSettings
from purchase_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from purchase_kernel.domain.clock import Clock, SystemClock
from purchase_kernel.domain.collaborators import (
    EmployeeDirectory,
    NotificationDispatcher,
    PermissionGate,
    RoleCapabilityResolver,
)
from purchase_kernel.domain.purchase import Actor
from purchase_kernel.services.audit_recorder import AuditRecorder
from purchase_services.action_handler import PurchaseActionHandler
from purchase_services.notification import PurchaseNotifier
from purchase_services.purchase_service import PurchaseService
from purchase_services.role_resolver import DirectoryRoleResolver
from purchase_services.workflow_config_service import WorkflowConfigService
from purchase_services.workflow_executor import WorkflowExecutor


@dataclass(frozen=True)
class HostCollaborators:
    """Adapters supplied by the host application.

    ``role_resolver`` defaults to a DirectoryRoleResolver over
    ``directory`` and the configured approval roles.
    """

    permission_gate: PermissionGate
    directory: EmployeeDirectory
    dispatcher: NotificationDispatcher | None = None
    role_resolver: RoleCapabilityResolver | None = None


def open_database(settings: EngineSettings, echo: bool = False) -> None:
    """Connect to ``settings.database_url`` and create missing tables."""
    init_engine_from_url(settings.database_url, echo=echo)
    create_tables()


def build_action_handler(
    session: Session,
    host: HostCollaborators,
    settings: EngineSettings,
    clock: Clock | None = None,
) -> PurchaseActionHandler:
    clock = clock or SystemClock()
    role_resolver = host.role_resolver or DirectoryRoleResolver(
        host.directory, settings.approval_roles,
    )
    executor = WorkflowExecutor(
        session=session,
        permission_gate=host.permission_gate,
        role_resolver=role_resolver,
        directory=host.directory,
        config_source=WorkflowConfigService(session, clock, host.permission_gate),
        notifier=PurchaseNotifier(host.dispatcher, settings.notify_policy),
        settings=settings,
        clock=clock,
    )
    return PurchaseActionHandler(
        executor,
        PurchaseService(session, host.permission_gate, clock),
        AuditRecorder(session),
        host.permission_gate,
        locale=settings.locale,
    )


def handle_action_in_scope(
    host: HostCollaborators,
    settings: EngineSettings,
    request_id: UUID | str,
    action: str,
    actor: Actor | None,
    payload: Mapping[str, Any] | None = None,
    clock: Clock | None = None,
) -> dict[str, Any]:
    """Run one action in a fresh session and return the result envelope."""
    with session_scope() as session:
        handler = build_action_handler(session, host, settings, clock)
        return handler.handle_action(request_id, action, actor, payload)
