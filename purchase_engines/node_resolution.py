"""
purchase_engines.node_resolution -- Pure workflow node filtering.

Responsibility:
    Given the workflow configuration and a request's organization and
    total, decide which approval nodes apply and in what order, and what
    approver a node targets.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import purchase_kernel/domain/ types.

Invariants enforced:
    - Determinism: the same configuration, organization and total always
      yield the same sequence, in configuration order.
    - Only ``user_activity`` nodes participate; system markers are inert.
    - Amount bounds are inclusive; organization ``all`` matches everything.
    - A disabled configuration resolves to the empty sequence.

Failure modes:
    - None raised here.  An empty sequence is a valid answer; the caller
      decides whether that means NoApplicableApprover.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from purchase_kernel.domain.purchase import OrganizationType
from purchase_kernel.domain.workflow import (
    ORGANIZATION_ALL,
    ApprovalMode,
    ApprovalNode,
    ApproverType,
    WorkflowConfig,
    WorkflowNode,
)

FALLBACK_NODE_ID = "fallback"


@dataclass(frozen=True)
class ApproverTarget:
    """Who a node assigns the request to.  Exactly one field is set."""

    approver_id: str | None = None
    approver_role: str | None = None


def node_matches(
    node: WorkflowNode,
    organization_type: OrganizationType | str,
    total: Decimal,
) -> bool:
    """True if ``node`` applies to a request with this organization and total."""
    if not isinstance(node, ApprovalNode):
        return False

    condition = node.condition
    if condition.min_amount is not None and total < condition.min_amount:
        return False
    if condition.max_amount is not None and total > condition.max_amount:
        return False

    org = condition.organization_type or ORGANIZATION_ALL
    request_org = (
        organization_type.value
        if isinstance(organization_type, OrganizationType)
        else organization_type
    )
    if org != ORGANIZATION_ALL and org != request_org:
        return False
    return True


def resolve_applicable_nodes(
    config: WorkflowConfig,
    organization_type: OrganizationType | str,
    total: Decimal,
) -> tuple[ApprovalNode, ...]:
    """Ordered approval nodes that apply to this request."""
    if not config.enabled:
        return ()
    return tuple(
        node for node in config.nodes
        if isinstance(node, ApprovalNode)
        and node_matches(node, organization_type, total)
    )


def first_applicable_node(
    nodes: tuple[ApprovalNode, ...],
) -> ApprovalNode | None:
    return nodes[0] if nodes else None


def node_position(
    nodes: tuple[ApprovalNode, ...],
    node_id: str | None,
) -> int | None:
    if node_id is None:
        return None
    for index, node in enumerate(nodes):
        if node.id == node_id:
            return index
    return None


def next_applicable_node(
    nodes: tuple[ApprovalNode, ...],
    current_node_id: str | None,
    fallback_index: int | None = None,
) -> tuple[int, ApprovalNode] | None:
    """The node after the current one, with its position.

    When the current node is no longer in the sequence (the configuration
    changed mid-flight), the stored step index stands in for its position.
    """
    position = node_position(nodes, current_node_id)
    if position is None:
        position = fallback_index
    if position is None:
        return None
    next_index = position + 1
    if 0 <= next_index < len(nodes):
        return next_index, nodes[next_index]
    return None


def current_node(
    nodes: tuple[ApprovalNode, ...],
    current_node_id: str | None,
    fallback_index: int | None = None,
) -> ApprovalNode | None:
    position = node_position(nodes, current_node_id)
    if position is not None:
        return nodes[position]
    if fallback_index is not None and 0 <= fallback_index < len(nodes):
        return nodes[fallback_index]
    return None


def approver_target(node: ApprovalNode) -> ApproverTarget:
    """Role node -> pending role; user node -> that exact user."""
    if node.approver_type == ApproverType.USER:
        return ApproverTarget(approver_id=node.approver_user_id)
    return ApproverTarget(approver_role=node.approver_role)


def fallback_node(role: str) -> ApprovalNode:
    """Synthetic node used when no configured node applies."""
    return ApprovalNode(
        id=FALLBACK_NODE_ID,
        name="Fallback approval",
        approver_type=ApproverType.ROLE,
        approver_role=role,
        approval_mode=ApprovalMode.SERIAL,
    )
