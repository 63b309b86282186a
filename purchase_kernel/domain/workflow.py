"""
Workflow configuration domain types (``purchase_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects describing the approval routing graph: an ordered
list of nodes, each either an approval node (``user_activity``) or an
inert system marker, plus optional display edges.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.

Invariants enforced
-------------------
* Role node => ``approver_role`` set; user node => ``approver_user_id`` set.
* ``min_amount <= max_amount`` when both are set.
* ``timeout_hours >= 1``.
* Node ids are unique within a configuration.

These are checked by ``purchase_config.validator``; the dataclasses
themselves only carry the data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Union

DEFAULT_WORKFLOW_KEY = "purchase_default"
ORGANIZATION_ALL = "all"
DEFAULT_TIMEOUT_HOURS = 24


class NodeType(str, Enum):
    """Workflow node kinds.  Only USER_ACTIVITY participates in routing."""

    USER_ACTIVITY = "user_activity"
    SYSTEM_ACTIVITY = "system_activity"
    SUB_PROCESS = "sub_process"
    CONNECTION = "connection"
    CIRCULATE = "circulate"


class ApproverType(str, Enum):
    ROLE = "role"
    USER = "user"


class ApprovalMode(str, Enum):
    """How a node completes.

    SERIAL: approval may advance to the next applicable node.
    ANY: the first approval by any eligible approver finishes the chain.
    """

    SERIAL = "serial"
    ANY = "any"


@dataclass(frozen=True)
class NodeCondition:
    """Gate deciding whether a node applies to a request.

    Bounds are inclusive.  ``None`` means unbounded.
    """

    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    organization_type: str = ORGANIZATION_ALL


@dataclass(frozen=True)
class ApprovalNode:
    """A node that routes the request to a role or a specific user."""

    id: str
    name: str
    approver_type: ApproverType = ApproverType.ROLE
    approver_role: str | None = None
    approver_user_id: str | None = None
    approval_mode: ApprovalMode = ApprovalMode.SERIAL
    timeout_hours: int = DEFAULT_TIMEOUT_HOURS
    required_comment: bool = False
    condition: NodeCondition = field(default_factory=NodeCondition)

    @property
    def node_type(self) -> NodeType:
        return NodeType.USER_ACTIVITY


@dataclass(frozen=True)
class SystemMarkerNode:
    """Display-only node.  Never matched, never assigned."""

    id: str
    name: str
    node_type: NodeType = NodeType.SYSTEM_ACTIVITY


WorkflowNode = Union[ApprovalNode, SystemMarkerNode]


@dataclass(frozen=True)
class WorkflowEdge:
    """Display edge between two nodes.  Inert for routing."""

    source: str
    target: str


@dataclass(frozen=True)
class WorkflowConfig:
    """A versioned snapshot of the routing configuration."""

    key: str = DEFAULT_WORKFLOW_KEY
    name: str = "Purchase approval"
    enabled: bool = True
    version: int = 1
    nodes: tuple[WorkflowNode, ...] = ()
    edges: tuple[WorkflowEdge, ...] = ()
    checksum: str | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None

    @property
    def approval_nodes(self) -> tuple[ApprovalNode, ...]:
        return tuple(n for n in self.nodes if isinstance(n, ApprovalNode))

    def node_by_id(self, node_id: str | None) -> WorkflowNode | None:
        if node_id is None:
            return None
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None
