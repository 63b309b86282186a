"""
Tests for WorkflowConfigService: seeding, saving, versioning and the
permission gate on reconfiguration.
"""

import pytest

from purchase_config.loader import load_workflow_file
from purchase_kernel.domain.purchase import Capability
from purchase_kernel.exceptions import (
    ImmutabilityViolationError,
    MissingCapabilityError,
    UnauthenticatedError,
    WorkflowConfigInvalidError,
)
from purchase_services.workflow_config_service import SEED_ACTOR_ID, WorkflowConfigService
from tests.conftest import ADMIN, MANAGER

NEW_ROUTING = {
    "name": "Two step",
    "nodes": [
        {"id": "lead", "approver_role": "department_manager"},
        {"id": "cfo", "approver_type": "user", "approver_user_id": "u-fin",
         "condition": {"min_amount": "10000"}},
    ],
    "edges": [{"source": "lead", "target": "cfo"}],
}


class TestSeeding:

    def test_first_load_seeds_packaged_default(self, config_service):
        config = config_service.load_workflow_config()

        packaged = load_workflow_file()
        assert config.version == 1
        assert config.nodes == packaged.nodes
        assert config.checksum == packaged.checksum
        assert config.updated_by == SEED_ACTOR_ID

    def test_seed_happens_once(self, config_service):
        config_service.load_workflow_config()
        config_service.load_workflow_config()
        assert len(config_service.revisions()) == 1


class TestSave:

    def test_save_replaces_and_bumps_version(self, config_service, captured_logs):
        config_service.load_workflow_config()

        saved = config_service.save_config(NEW_ROUTING, ADMIN)

        assert saved.version == 2
        assert saved.name == "Two step"
        assert [n.id for n in saved.nodes] == ["lead", "cfo"]
        assert saved.updated_by == ADMIN.id
        assert config_service.load_workflow_config() == saved
        assert any(r["message"] == "workflow_config_saved" for r in captured_logs())

    def test_save_without_prior_config_seeds_first(self, config_service):
        saved = config_service.save_config(NEW_ROUTING, ADMIN)
        assert saved.version == 2
        assert [r.version for r in config_service.revisions()] == [1, 2]

    def test_identical_documents_share_checksum(self, config_service):
        first = config_service.save_config(NEW_ROUTING, ADMIN)
        second = config_service.save_config(NEW_ROUTING, ADMIN)
        assert second.version == first.version + 1
        assert second.checksum == first.checksum

    def test_invalid_document_rejected(self, config_service):
        config_service.load_workflow_config()
        bad = {"nodes": [{"id": "x", "approver_type": "user"}]}

        with pytest.raises(WorkflowConfigInvalidError) as exc_info:
            config_service.save_config(bad, ADMIN)

        assert any("approver_user_id" in e for e in exc_info.value.errors)
        assert config_service.load_workflow_config().version == 1

    def test_save_requires_configure_capability(self, config_service):
        with pytest.raises(MissingCapabilityError):
            config_service.save_config(NEW_ROUTING, MANAGER)

    def test_save_requires_actor(self, config_service):
        with pytest.raises(UnauthenticatedError):
            config_service.save_config(NEW_ROUTING, None)

    def test_granted_capability(self, config_service, permission_gate):
        permission_gate.grant(MANAGER.id, Capability.WORKFLOW_CONFIGURE)
        assert config_service.save_config(NEW_ROUTING, MANAGER).updated_by == MANAGER.id

    def test_no_gate_means_no_saves(self, session, deterministic_clock):
        service = WorkflowConfigService(session, deterministic_clock)
        with pytest.raises(MissingCapabilityError):
            service.save_config(NEW_ROUTING, ADMIN)


class TestRevisions:

    def test_revision_history_is_append_only(self, config_service, session):
        config_service.save_config(NEW_ROUTING, ADMIN)
        revision = config_service.revisions()[0]

        revision.saved_by = "someone else"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
