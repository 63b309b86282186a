"""
Tests for the host integration entrypoint: database bootstrap from
settings and one-session-per-action handling.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from purchase_config.settings import EngineSettings
from purchase_kernel.db.engine import drop_tables, reset_engine, session_scope
from purchase_kernel.domain.collaborators import NotificationEvent
from purchase_kernel.domain.purchase import NewPurchase
from purchase_services.integration import (
    HostCollaborators,
    build_action_handler,
    handle_action_in_scope,
    open_database,
)
from purchase_services.purchase_service import PurchaseService
from tests.conftest import (
    MANAGER,
    REQUESTER,
    FakeDirectory,
    FakePermissionGate,
    RecordingDispatcher,
)


@pytest.fixture
def settings(tmp_path):
    configured = EngineSettings(database_url=f"sqlite:///{tmp_path / 'host.db'}")
    open_database(configured)
    yield configured
    drop_tables()
    reset_engine()


@pytest.fixture
def host():
    return HostCollaborators(
        permission_gate=FakePermissionGate(),
        directory=FakeDirectory(),
        dispatcher=RecordingDispatcher(),
    )


@pytest.fixture
def draft_id(host):
    with session_scope() as session:
        draft = PurchaseService(session, host.permission_gate).create_draft(
            NewPurchase(
                purchaser_id=REQUESTER.id,
                organization_type="company",
                item_name="Whiteboard",
                quantity=Decimal("1"),
                unit_price=Decimal("80"),
                department="ops",
            ),
            REQUESTER,
        )
    return draft.id


class TestHandleActionInScope:

    def test_actions_persist_across_sessions(self, settings, host, draft_id):
        submitted = handle_action_in_scope(host, settings, draft_id, "submit", REQUESTER)
        approved = handle_action_in_scope(
            host, settings, str(draft_id), "approve", MANAGER, {"comment": "fine"},
        )

        assert submitted["request"]["status"] == "pending_approval"
        assert approved["request"]["status"] == "approved"
        assert approved["request"]["version"] == 3

    def test_dispatcher_receives_events(self, settings, host, draft_id):
        handle_action_in_scope(host, settings, draft_id, "submit", REQUESTER)
        assert host.dispatcher.events == [NotificationEvent.PURCHASE_SUBMITTED]

    def test_refusal_writes_nothing(self, settings, host, draft_id):
        result = handle_action_in_scope(host, settings, draft_id, "approve", MANAGER)
        assert result["code"] == "INVALID_TRANSITION"

        logs = handle_action_in_scope(host, settings, draft_id, "logs", REQUESTER)
        assert logs["logs"] == []


class TestBuildActionHandler:

    def test_locale_comes_from_settings(self, settings, host):
        localized = replace(settings, locale="zh-CN")
        with session_scope() as session:
            english = build_action_handler(session, host, settings)
            chinese = build_action_handler(session, host, localized)
            en = english.handle_action("not-a-uuid", "submit", REQUESTER)
            zh = chinese.handle_action("not-a-uuid", "submit", REQUESTER)

        assert en["code"] == zh["code"] == "PURCHASE_NOT_FOUND"
        assert en["message"] != zh["message"]
