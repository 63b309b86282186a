"""
Pure domain layer.

Value objects and protocols with NO dependencies on the ORM, the
database, the clock, or I/O.  All domain objects are immutable.
"""

from purchase_kernel.domain.audit import (
    AuditLogEntry,
    AuditPage,
    AuditQuery,
    TimelineGroup,
    TimelineOrder,
    TimelineStep,
)
from purchase_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from purchase_kernel.domain.collaborators import (
    EmployeeDirectory,
    NotificationDispatcher,
    NotificationEvent,
    PermissionGate,
    RoleCapabilityResolver,
    WorkflowConfigSource,
)
from purchase_kernel.domain.purchase import (
    ActionPayload,
    Actor,
    AuditAction,
    Capability,
    EmployeeSummary,
    NewPurchase,
    OrganizationType,
    PurchaseRequest,
    PurchaseStatus,
    ReimbursementStatus,
    WorkflowAction,
    WorkflowProfile,
)
from purchase_kernel.domain.workflow import (
    ApprovalMode,
    ApprovalNode,
    ApproverType,
    NodeCondition,
    NodeType,
    SystemMarkerNode,
    WorkflowConfig,
    WorkflowEdge,
)

__all__ = [
    "ActionPayload",
    "Actor",
    "ApprovalMode",
    "ApprovalNode",
    "ApproverType",
    "AuditAction",
    "AuditLogEntry",
    "AuditPage",
    "AuditQuery",
    "Capability",
    "Clock",
    "DeterministicClock",
    "EmployeeDirectory",
    "EmployeeSummary",
    "NewPurchase",
    "NodeCondition",
    "NodeType",
    "NotificationDispatcher",
    "NotificationEvent",
    "OrganizationType",
    "PermissionGate",
    "PurchaseRequest",
    "PurchaseStatus",
    "ReimbursementStatus",
    "RoleCapabilityResolver",
    "SystemClock",
    "SystemMarkerNode",
    "TimelineGroup",
    "TimelineOrder",
    "TimelineStep",
    "WorkflowAction",
    "WorkflowConfig",
    "WorkflowConfigSource",
    "WorkflowEdge",
    "WorkflowProfile",
]
