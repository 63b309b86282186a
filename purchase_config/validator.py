"""
Workflow Configuration Validator (``purchase_config.validator``).

Responsibility
--------------
Strictly validates a raw workflow document before it is saved, so that
an administrator gets every problem at once instead of a silently
normalized configuration.

Architecture position
---------------------
**Config layer** -- save-time validation.  Called by
``purchase_services.workflow_config_service`` before persisting.

Invariants enforced
-------------------
* Role node => ``approver_role`` set; user node => ``approver_user_id`` set.
* ``min_amount <= max_amount`` when both set; amounts must be numeric and
  non-negative.
* Node ids unique; edges reference existing nodes.
* ``timeout_hours >= 1``.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``) -> the document MUST NOT be saved.
* Warnings -> saved, but worth reviewing (e.g. an enabled configuration
  with no approval node routes every submit to NoApplicableApprover).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from purchase_kernel.domain.workflow import ORGANIZATION_ALL, NodeType

_APPROVER_TYPES = frozenset({"role", "user"})
_APPROVAL_MODES = frozenset({"serial", "any"})
_ORGANIZATIONS = frozenset({ORGANIZATION_ALL, "school", "company"})
_NODE_TYPES = frozenset(t.value for t in NodeType)


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _check_amount(
    value: Any, label: str, result: ConfigValidationResult,
) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        result.add_error(f"{label} must be a number, got {value!r}")
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        result.add_error(f"{label} must be a number, got {value!r}")
        return None
    if not amount.is_finite():
        result.add_error(f"{label} must be finite, got {value!r}")
        return None
    if amount < 0:
        result.add_error(f"{label} must not be negative, got {value!r}")
    return amount


def _validate_node(
    node: Mapping[str, Any], index: int, result: ConfigValidationResult,
) -> None:
    label = f"node[{index}] ({node.get('id') or 'no id'})"
    node_type = node.get("node_type", NodeType.USER_ACTIVITY.value)
    if node_type not in _NODE_TYPES:
        result.add_error(f"{label}: unknown node_type {node_type!r}")
        return
    if node_type != NodeType.USER_ACTIVITY.value:
        return

    approver_type = node.get("approver_type", "role")
    if approver_type not in _APPROVER_TYPES:
        result.add_error(f"{label}: approver_type must be 'role' or 'user'")
    elif approver_type == "role" and not node.get("approver_role"):
        result.add_error(f"{label}: role node requires approver_role")
    elif approver_type == "user" and not node.get("approver_user_id"):
        result.add_error(f"{label}: user node requires approver_user_id")

    mode = node.get("approval_mode", "serial")
    if mode not in _APPROVAL_MODES:
        result.add_error(f"{label}: approval_mode must be 'serial' or 'any'")

    timeout = node.get("timeout_hours")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, int):
            result.add_error(f"{label}: timeout_hours must be an integer")
        elif timeout < 1:
            result.add_error(f"{label}: timeout_hours must be at least 1")

    condition = node.get("condition") or {}
    if not isinstance(condition, Mapping):
        result.add_error(f"{label}: condition must be a mapping")
        return
    low = _check_amount(condition.get("min_amount"), f"{label}: min_amount", result)
    high = _check_amount(condition.get("max_amount"), f"{label}: max_amount", result)
    if low is not None and high is not None and low > high:
        result.add_error(f"{label}: min_amount {low} exceeds max_amount {high}")

    org = condition.get("organization_type", ORGANIZATION_ALL)
    if org not in _ORGANIZATIONS:
        result.add_error(
            f"{label}: organization_type must be one of {sorted(_ORGANIZATIONS)}"
        )


def validate_workflow_document(document: Mapping[str, Any]) -> ConfigValidationResult:
    """
    Validate a raw workflow document.

    Postconditions:
        - Returns a result whose ``errors`` list every violated invariant.
    """
    result = ConfigValidationResult()

    nodes = document.get("nodes")
    if not isinstance(nodes, list):
        result.add_error("nodes must be a list")
        return result

    seen: set[str] = set()
    approval_count = 0
    for index, node in enumerate(nodes):
        if not isinstance(node, Mapping):
            result.add_error(f"node[{index}] must be a mapping")
            continue
        node_id = str(node.get("id") or "").strip()
        if not node_id:
            result.add_error(f"node[{index}]: id is required")
        elif node_id in seen:
            result.add_error(f"node[{index}]: duplicate id {node_id!r}")
        else:
            seen.add(node_id)
        if node.get("node_type", NodeType.USER_ACTIVITY.value) == NodeType.USER_ACTIVITY.value:
            approval_count += 1
        _validate_node(node, index, result)

    edges = document.get("edges") or []
    if not isinstance(edges, list):
        result.add_error("edges must be a list")
    else:
        for index, edge in enumerate(edges):
            if not isinstance(edge, Mapping):
                result.add_error(f"edge[{index}] must be a mapping")
                continue
            for end in ("source", "target"):
                ref = edge.get(end)
                if ref not in seen:
                    result.add_error(f"edge[{index}]: {end} {ref!r} is not a node id")

    if document.get("enabled", True) and approval_count == 0:
        result.add_warning(
            "enabled workflow has no approval node; every submit will fail "
            "unless a fallback approver role is configured"
        )
    return result
