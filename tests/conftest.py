"""
Pytest fixtures for the purchase workflow test suite.

Provides:
- A fresh in-memory SQLite database per test (tables created per test)
- Deterministic clock and captured structured logs
- In-memory fakes for the collaborators the workflow consumes
  (permission gate, employee directory, notification dispatcher)
- Factories for drafts and fully wired executors

Environment Variables:
- None.  Tests never read DATABASE_URL; the concurrency tests create their
  own file-backed SQLite database under tmp_path.
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from io import StringIO
from typing import Any

import pytest

from purchase_config.settings import EngineSettings
from purchase_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from purchase_kernel.domain.clock import DeterministicClock
from purchase_kernel.domain.collaborators import NotificationEvent
from purchase_kernel.domain.purchase import (
    Actor,
    Capability,
    EmployeeSummary,
    NewPurchase,
    PurchaseRequest,
)
from purchase_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from purchase_kernel.services.audit_recorder import AuditRecorder
from purchase_services.action_handler import PurchaseActionHandler
from purchase_services.notification import PurchaseNotifier
from purchase_services.purchase_service import PurchaseService
from purchase_services.role_resolver import DirectoryRoleResolver
from purchase_services.workflow_config_service import WorkflowConfigService
from purchase_services.workflow_executor import WorkflowExecutor

# =============================================================================
# Test actors
# =============================================================================

REQUESTER = Actor(id="u-req", name="Rita Requester")
MANAGER = Actor(id="u-mgr", name="Mona Manager")
MANAGER_2 = Actor(id="u-mgr2", name="Milo Manager")
FINANCE = Actor(id="u-fin", name="Fay Finance")
ADMIN = Actor(id="u-admin", name="Ada Admin")
OUTSIDER = Actor(id="u-out", name="Otto Outsider")

EMPLOYEES = (
    EmployeeSummary(id=REQUESTER.id, name=REQUESTER.name, role="staff", department="ops"),
    EmployeeSummary(id=MANAGER.id, name=MANAGER.name, role="department_manager", department="ops"),
    EmployeeSummary(
        id=MANAGER_2.id, name=MANAGER_2.name, role="department_manager", department="sales",
    ),
    EmployeeSummary(id=FINANCE.id, name=FINANCE.name, role="finance", department="finance"),
    EmployeeSummary(id=ADMIN.id, name=ADMIN.name, role="admin", department="it"),
    EmployeeSummary(id=OUTSIDER.id, name=OUTSIDER.name, role="staff", department="ops"),
    EmployeeSummary(
        id="u-gone", name="Gus Gone", role="department_manager", department="ops",
        is_active=False,
    ),
)

_APPROVE = {Capability.PURCHASE_APPROVE.value, Capability.PURCHASE_REJECT.value}

DEFAULT_GRANTS: dict[str, set[str]] = {
    REQUESTER.id: {Capability.PURCHASE_CREATE.value},
    MANAGER.id: {Capability.PURCHASE_CREATE.value, *_APPROVE},
    MANAGER_2.id: set(_APPROVE),
    FINANCE.id: {*_APPROVE, Capability.PURCHASE_PAY.value, Capability.PURCHASE_VIEW_ALL.value},
    ADMIN.id: {
        *_APPROVE,
        Capability.PURCHASE_CREATE.value,
        Capability.PURCHASE_VIEW_ALL.value,
        Capability.APPROVAL_OVERRIDE.value,
        Capability.WORKFLOW_CONFIGURE.value,
    },
    OUTSIDER.id: set(),
}


# =============================================================================
# Collaborator fakes
# =============================================================================


class FakePermissionGate:
    """Grants per actor id; records every question asked."""

    def __init__(self, grants: dict[str, set[str]] | None = None):
        self.grants = {k: set(v) for k, v in (grants or DEFAULT_GRANTS).items()}
        self.calls: list[tuple[str, str]] = []

    def check_permission(self, actor: Actor, capability: str) -> bool:
        self.calls.append((actor.id, capability))
        return capability in self.grants.get(actor.id, set())

    def grant(self, actor_id: str, capability: Capability) -> None:
        self.grants.setdefault(actor_id, set()).add(capability.value)

    def revoke(self, actor_id: str, capability: Capability) -> None:
        self.grants.get(actor_id, set()).discard(capability.value)


class FakeDirectory:
    """EmployeeDirectory over a fixed list, in list order."""

    def __init__(self, employees=EMPLOYEES):
        self.employees = list(employees)

    def get_employee_by_id(self, employee_id: str) -> EmployeeSummary | None:
        for employee in self.employees:
            if employee.id == employee_id:
                return employee
        return None

    def list_active_by_role(self, role: str) -> tuple[EmployeeSummary, ...]:
        return tuple(e for e in self.employees if e.role == role and e.is_active)


@dataclass
class RecordingDispatcher:
    """NotificationDispatcher that remembers every call, optionally failing."""

    fail: bool = False
    sent: list[tuple[NotificationEvent, PurchaseRequest, dict]] = field(default_factory=list)

    def notify(self, event, request, context) -> None:
        if self.fail:
            raise ConnectionError("notification transport unavailable")
        self.sent.append((event, request, dict(context)))

    @property
    def events(self) -> list[NotificationEvent]:
        return [event for event, _, _ in self.sent]


class StaticConfigSource:
    """WorkflowConfigSource returning a fixed configuration."""

    def __init__(self, config):
        self.config = config
        self.loads = 0

    def load_workflow_config(self):
        self.loads += 1
        return self.config


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture purchase_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, executor):
            executor.apply_action(...)
            logs = captured_logs()
            assert any(r["message"] == "purchase_transition_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("purchase_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database for one test."""
    eng = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


# =============================================================================
# Collaborator fixtures
# =============================================================================


@pytest.fixture
def permission_gate():
    return FakePermissionGate()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def engine_settings():
    return EngineSettings()


@pytest.fixture
def role_resolver(directory, engine_settings):
    return DirectoryRoleResolver(directory, engine_settings.approval_roles)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def config_service(session, deterministic_clock, permission_gate):
    return WorkflowConfigService(session, deterministic_clock, permission_gate)


@pytest.fixture
def recorder(session):
    return AuditRecorder(session)


@pytest.fixture
def purchase_service(session, permission_gate, deterministic_clock):
    return PurchaseService(session, permission_gate, deterministic_clock)


@pytest.fixture
def make_executor(
    session, permission_gate, role_resolver, directory, config_service,
    dispatcher, engine_settings, deterministic_clock,
):
    """Build an executor; keyword overrides replace individual collaborators."""

    def _make(**overrides: Any) -> WorkflowExecutor:
        settings = overrides.pop("settings", engine_settings)
        kwargs = dict(
            session=session,
            permission_gate=permission_gate,
            role_resolver=role_resolver,
            directory=directory,
            config_source=config_service,
            notifier=PurchaseNotifier(
                overrides.pop("dispatcher", dispatcher), settings.notify_policy,
            ),
            settings=settings,
            clock=deterministic_clock,
        )
        kwargs.update(overrides)
        return WorkflowExecutor(**kwargs)

    return _make


@pytest.fixture
def executor(make_executor):
    return make_executor()


@pytest.fixture
def handler(executor, purchase_service, recorder, permission_gate):
    return PurchaseActionHandler(executor, purchase_service, recorder, permission_gate)


@pytest.fixture
def make_draft(purchase_service):
    """Create a draft owned by REQUESTER; total = quantity * unit_price + fee."""

    def _make(
        quantity: str = "2",
        unit_price: str = "100",
        fee_amount: str = "0",
        organization_type: str = "school",
        actor: Actor = REQUESTER,
        department: str | None = "ops",
        item_name: str = "Projector",
    ) -> PurchaseRequest:
        return purchase_service.create_draft(
            NewPurchase(
                purchaser_id=actor.id,
                organization_type=organization_type,
                item_name=item_name,
                quantity=Decimal(quantity),
                unit_price=Decimal(unit_price),
                fee_amount=Decimal(fee_amount),
                purpose="Classroom equipment",
                department=department,
            ),
            actor,
        )

    return _make
