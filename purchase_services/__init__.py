"""
purchase_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the pure engines (purchase_engines/) and
    the kernel (purchase_kernel/).  This is the only layer that holds
    database sessions, reads the clock, or talks to collaborators.

Architecture position:
    Services -- stateful orchestration over engines + kernel + config.

    Dependency direction:
        purchase_services/ -> purchase_engines/  (allowed)
        purchase_services/ -> purchase_kernel/   (allowed)
        purchase_services/ -> purchase_config/   (allowed)
        purchase_engines/  -> purchase_services/ (FORBIDDEN)
        purchase_kernel/   -> purchase_services/ (FORBIDDEN)
"""

from purchase_services.action_handler import PurchaseActionHandler
from purchase_services.integration import HostCollaborators, handle_action_in_scope
from purchase_services.notification import DeliveryOutcome, PurchaseNotifier
from purchase_services.purchase_service import PurchaseService
from purchase_services.role_resolver import DirectoryRoleResolver
from purchase_services.workflow_config_service import WorkflowConfigService
from purchase_services.workflow_executor import WorkflowExecutor

__all__ = [
    "DeliveryOutcome",
    "DirectoryRoleResolver",
    "HostCollaborators",
    "PurchaseActionHandler",
    "PurchaseNotifier",
    "PurchaseService",
    "WorkflowConfigService",
    "WorkflowExecutor",
    "handle_action_in_scope",
]
