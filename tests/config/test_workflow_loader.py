"""
Tests for workflow document parsing, rendering and checksums.
"""

from decimal import Decimal

import yaml

from purchase_config.loader import (
    DEFAULT_NODE_NAME,
    FALLBACK_ROLE,
    compute_checksum,
    dump_workflow_yaml,
    load_workflow_file,
    parse_workflow_document,
    workflow_to_document,
)
from purchase_kernel.domain.workflow import (
    DEFAULT_TIMEOUT_HOURS,
    ApprovalMode,
    ApprovalNode,
    ApproverType,
    NodeType,
    SystemMarkerNode,
)


def _doc(*nodes, **extra):
    return {"key": "purchase_default", "name": "Routing", "nodes": list(nodes), **extra}


class TestPackagedDefaults:

    def test_default_workflow_loads(self):
        config = load_workflow_file()

        assert config.enabled
        assert [n.id for n in config.nodes] == ["department_manager_approval", "finance_review"]
        finance = config.nodes[1]
        assert finance.approver_role == "finance"
        assert finance.condition.min_amount == Decimal("5000")
        assert config.checksum

    def test_yaml_dump_reloads_identically(self):
        config = load_workflow_file()
        reloaded = parse_workflow_document(yaml.safe_load(dump_workflow_yaml(config)))
        assert reloaded == config


class TestLenientParsing:

    def test_unknown_node_type_becomes_user_activity(self):
        config = parse_workflow_document(_doc({"id": "a", "node_type": "wat", "approver_role": "x"}))
        assert isinstance(config.nodes[0], ApprovalNode)

    def test_marker_nodes(self):
        config = parse_workflow_document(_doc({"id": "s", "node_type": "system_activity"}))
        assert isinstance(config.nodes[0], SystemMarkerNode)
        assert config.nodes[0].node_type == NodeType.SYSTEM_ACTIVITY

    def test_role_node_without_role_falls_back(self):
        node = parse_workflow_document(_doc({"id": "a"})).nodes[0]
        assert node.approver_type == ApproverType.ROLE
        assert node.approver_role == FALLBACK_ROLE

    def test_user_node(self):
        node = parse_workflow_document(
            _doc({"id": "a", "approver_type": "user", "approver_user_id": "u-1"})
        ).nodes[0]
        assert node.approver_user_id == "u-1"
        assert node.approver_role is None

    def test_defaults_filled(self):
        node = parse_workflow_document(_doc({"approver_role": "finance"})).nodes[0]
        assert node.id == "node_1"
        assert node.name == DEFAULT_NODE_NAME
        assert node.approval_mode == ApprovalMode.SERIAL
        assert node.timeout_hours == DEFAULT_TIMEOUT_HOURS
        assert node.condition.organization_type == "all"

    def test_timeout_clamped(self):
        node = parse_workflow_document(_doc({"id": "a", "timeout_hours": -5})).nodes[0]
        assert node.timeout_hours == 1

    def test_bad_amount_is_unbounded(self):
        node = parse_workflow_document(
            _doc({"id": "a", "condition": {"min_amount": "lots", "organization_type": "moon"}})
        ).nodes[0]
        assert node.condition.min_amount is None
        assert node.condition.organization_type == "all"

    def test_bare_node_list(self):
        config = parse_workflow_document([{"id": "a", "approver_role": "finance"}])
        assert [n.id for n in config.nodes] == ["a"]

    def test_edges_missing_ends_dropped(self):
        config = parse_workflow_document(
            _doc({"id": "a"}, edges=[{"source": "a"}, {"source": "a", "target": "a"}, "junk"])
        )
        assert len(config.edges) == 1


class TestChecksum:

    def test_equivalent_amounts_hash_identically(self):
        a = parse_workflow_document(_doc({"id": "a", "condition": {"min_amount": "5000"}}))
        b = parse_workflow_document(_doc({"id": "a", "condition": {"min_amount": "5000.00"}}))
        assert a.checksum == b.checksum

    def test_version_ignored(self):
        doc = workflow_to_document(parse_workflow_document(_doc({"id": "a"})))
        assert compute_checksum({**doc, "version": 1}) == compute_checksum({**doc, "version": 9})

    def test_any_change_changes_checksum(self):
        a = parse_workflow_document(_doc({"id": "a", "approver_role": "finance"}))
        b = parse_workflow_document(_doc({"id": "a", "approver_role": "admin"}))
        assert a.checksum != b.checksum
