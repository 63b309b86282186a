"""
Workflow Configuration Loader (``purchase_config.loader``).

Responsibility
--------------
Parses workflow configuration documents (YAML files or the JSON stored
in the ``workflow_config`` table) into frozen
``purchase_kernel.domain.workflow`` dataclasses, and renders them back
into documents.

Architecture position
---------------------
**Config layer**.  Depends on kernel domain types only.  Consumed by
``purchase_services.workflow_config_service``.

Invariants enforced
-------------------
* Parsing is lenient and normalizing: unknown node types become
  ``user_activity``, unknown approver types become ``role``, unknown
  organization conditions become ``all``, ``timeout_hours`` is clamped to
  at least 1, and a role node without a role falls back to ``admin``.
  Strict checks happen in ``purchase_config.validator`` before a save.
* ``compute_checksum`` is deterministic over the normalized document, so
  equivalent documents hash identically.

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from purchase_kernel.domain.workflow import (
    DEFAULT_TIMEOUT_HOURS,
    DEFAULT_WORKFLOW_KEY,
    ORGANIZATION_ALL,
    ApprovalMode,
    ApprovalNode,
    ApproverType,
    NodeCondition,
    NodeType,
    SystemMarkerNode,
    WorkflowConfig,
    WorkflowEdge,
    WorkflowNode,
)
from purchase_kernel.utils.hashing import hash_payload

DEFAULTS_DIR = Path(__file__).parent / "defaults"
DEFAULT_WORKFLOW_FILE = DEFAULTS_DIR / "workflow.yaml"
DEFAULT_SETTINGS_FILE = DEFAULTS_DIR / "settings.yaml"

DEFAULT_WORKFLOW_NAME = "Purchase approval"
DEFAULT_NODE_NAME = "Unnamed node"
FALLBACK_ROLE = "admin"

_ORGANIZATION_VALUES = frozenset({"school", "company"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_amount(value: Any) -> Decimal | None:
    """Amount bound from YAML/JSON.  Blank or unparseable means unbounded."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_timeout(value: Any) -> int:
    try:
        hours = int(value) if value not in (None, "") else DEFAULT_TIMEOUT_HOURS
    except (TypeError, ValueError):
        hours = DEFAULT_TIMEOUT_HOURS
    if hours == 0:
        hours = DEFAULT_TIMEOUT_HOURS
    return max(1, hours)


def parse_node_type(value: Any) -> NodeType:
    try:
        return NodeType(value)
    except ValueError:
        return NodeType.USER_ACTIVITY


def parse_condition(data: Mapping[str, Any] | None) -> NodeCondition:
    data = data or {}
    org = data.get("organization_type")
    return NodeCondition(
        min_amount=parse_amount(data.get("min_amount")),
        max_amount=parse_amount(data.get("max_amount")),
        organization_type=org if org in _ORGANIZATION_VALUES else ORGANIZATION_ALL,
    )


def parse_node(data: Mapping[str, Any], position: int) -> WorkflowNode:
    """Parse one node.  ``position`` seeds an id when none is given."""
    node_id = str(data.get("id") or "").strip() or f"node_{position + 1}"
    name = str(data.get("name") or "").strip() or DEFAULT_NODE_NAME
    node_type = parse_node_type(data.get("node_type"))

    if node_type != NodeType.USER_ACTIVITY:
        return SystemMarkerNode(id=node_id, name=name, node_type=node_type)

    approver_type = (
        ApproverType.USER if data.get("approver_type") == "user" else ApproverType.ROLE
    )
    approver_role = None
    approver_user_id = None
    if approver_type == ApproverType.ROLE:
        approver_role = data.get("approver_role") or FALLBACK_ROLE
    else:
        approver_user_id = data.get("approver_user_id") or None

    return ApprovalNode(
        id=node_id,
        name=name,
        approver_type=approver_type,
        approver_role=approver_role,
        approver_user_id=approver_user_id,
        approval_mode=(
            ApprovalMode.ANY if data.get("approval_mode") == "any" else ApprovalMode.SERIAL
        ),
        timeout_hours=parse_timeout(data.get("timeout_hours")),
        required_comment=bool(data.get("required_comment", False)),
        condition=parse_condition(data.get("condition")),
    )


def parse_edges(raw: Any) -> tuple[WorkflowEdge, ...]:
    if not isinstance(raw, list):
        return ()
    edges = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        source = str(item.get("source") or "")
        target = str(item.get("target") or "")
        if source and target:
            edges.append(WorkflowEdge(source=source, target=target))
    return tuple(edges)


def parse_workflow_document(data: Mapping[str, Any] | list | None) -> WorkflowConfig:
    """
    Parse a workflow document into a ``WorkflowConfig``.

    A bare list is accepted as a node list (older stored layout).
    """
    if isinstance(data, list):
        data = {"nodes": data}
    data = data or {}

    raw_nodes = data.get("nodes") if isinstance(data.get("nodes"), list) else []
    nodes = tuple(
        parse_node(item, i) for i, item in enumerate(raw_nodes) if isinstance(item, Mapping)
    )
    config = WorkflowConfig(
        key=str(data.get("key") or DEFAULT_WORKFLOW_KEY),
        name=str(data.get("name") or "").strip() or DEFAULT_WORKFLOW_NAME,
        enabled=bool(data.get("enabled", True)),
        version=int(data.get("version") or 1),
        nodes=nodes,
        edges=parse_edges(data.get("edges")),
    )
    return _with_checksum(config)


def _with_checksum(config: WorkflowConfig) -> WorkflowConfig:
    return replace(config, checksum=compute_checksum(workflow_to_document(config)))


def _amount_out(value: Decimal | None) -> str | None:
    # 5000 and 5000.00 render identically
    return None if value is None else format(value.normalize(), "f")


def node_to_document(node: WorkflowNode) -> dict[str, Any]:
    if isinstance(node, SystemMarkerNode):
        return {"id": node.id, "name": node.name, "node_type": node.node_type.value}
    return {
        "id": node.id,
        "node_type": NodeType.USER_ACTIVITY.value,
        "name": node.name,
        "approver_type": node.approver_type.value,
        "approver_role": node.approver_role,
        "approver_user_id": node.approver_user_id,
        "approval_mode": node.approval_mode.value,
        "timeout_hours": node.timeout_hours,
        "required_comment": node.required_comment,
        "condition": {
            "min_amount": _amount_out(node.condition.min_amount),
            "max_amount": _amount_out(node.condition.max_amount),
            "organization_type": node.condition.organization_type,
        },
    }


def workflow_to_document(config: WorkflowConfig) -> dict[str, Any]:
    """Render a config as a JSON-safe document (no version/checksum)."""
    return {
        "key": config.key,
        "name": config.name,
        "enabled": config.enabled,
        "nodes": [node_to_document(n) for n in config.nodes],
        "edges": [{"source": e.source, "target": e.target} for e in config.edges],
    }


def compute_checksum(document: Mapping[str, Any]) -> str:
    """SHA-256 over the canonical document, ignoring version and checksum."""
    content = {k: v for k, v in document.items() if k not in ("version", "checksum")}
    return hash_payload(content)


def load_workflow_file(path: Path = DEFAULT_WORKFLOW_FILE) -> WorkflowConfig:
    return parse_workflow_document(load_yaml_file(path))


def dump_workflow_yaml(config: WorkflowConfig) -> str:
    return yaml.safe_dump(workflow_to_document(config), sort_keys=False, allow_unicode=True)
