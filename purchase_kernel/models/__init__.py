"""ORM models for the purchase workflow."""

from purchase_kernel.models.audit_log import PurchaseAuditLogModel
from purchase_kernel.models.purchase import PurchaseRequestModel
from purchase_kernel.models.workflow_config import (
    WorkflowConfigModel,
    WorkflowConfigRevisionModel,
)

__all__ = [
    "PurchaseAuditLogModel",
    "PurchaseRequestModel",
    "WorkflowConfigModel",
    "WorkflowConfigRevisionModel",
    "import_all_models",
]


def import_all_models() -> tuple[type, ...]:
    """Return every mapped class so Base.metadata knows all tables."""
    return (
        PurchaseRequestModel,
        PurchaseAuditLogModel,
        WorkflowConfigModel,
        WorkflowConfigRevisionModel,
    )
