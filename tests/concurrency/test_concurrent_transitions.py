"""
Concurrency tests for purchase transitions.

Verifies that two actions started from the same snapshot produce exactly
one winner:
- Deterministic interleaving: a competing transition commits between the
  loser's read and its conditional update.
- True threads: several approvers race on a file-backed SQLite database,
  each thread with its own session.
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from purchase_config.loader import load_workflow_file
from purchase_config.settings import EngineSettings
from purchase_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from purchase_kernel.domain.clock import DeterministicClock
from purchase_kernel.domain.purchase import AuditAction, NewPurchase, PurchaseStatus
from purchase_kernel.exceptions import ConcurrentTransitionError, InvalidTransitionError
from purchase_kernel.services.audit_recorder import AuditRecorder
from purchase_services.purchase_service import PurchaseService
from purchase_services.role_resolver import DirectoryRoleResolver
from purchase_services.workflow_executor import WorkflowExecutor
from tests.conftest import (
    ADMIN,
    FINANCE,
    MANAGER,
    MANAGER_2,
    REQUESTER,
    FakeDirectory,
    FakePermissionGate,
    StaticConfigSource,
)

S = PurchaseStatus


class InterleavingConfigSource:
    """Runs ``hook`` once, after the snapshot is read and before the write."""

    def __init__(self, inner, hook):
        self._inner = inner
        self._hook = hook

    def load_workflow_config(self):
        if self._hook is not None:
            hook, self._hook = self._hook, None
            hook()
        return self._inner.load_workflow_config()


@pytest.fixture
def submitted(executor, make_draft):
    draft = make_draft()
    return executor.apply_action(draft.id, "submit", REQUESTER)


# =========================================================================
# Deterministic interleaving
# =========================================================================


class TestStaleSnapshot:

    def test_second_approver_loses(self, make_executor, config_service, submitted, recorder):
        racer = make_executor()
        slow = make_executor(config_source=InterleavingConfigSource(
            config_service,
            lambda: racer.apply_action(submitted.id, "approve", MANAGER_2),
        ))

        with pytest.raises(ConcurrentTransitionError) as exc_info:
            slow.apply_action(submitted.id, "approve", MANAGER)

        assert exc_info.value.kind.value == "InvalidTransition"
        approvals = [e for e in recorder.logs_for(submitted.id) if e.action == AuditAction.APPROVE]
        assert [e.operator_id for e in approvals] == [MANAGER_2.id]

    def test_reject_wins_over_approve(
        self, make_executor, config_service, submitted, purchase_service,
    ):
        racer = make_executor()
        slow = make_executor(config_source=InterleavingConfigSource(
            config_service,
            lambda: racer.apply_action(submitted.id, "reject", MANAGER_2, {"reason": "dup"}),
        ))

        with pytest.raises(ConcurrentTransitionError):
            slow.apply_action(submitted.id, "approve", MANAGER)

        assert purchase_service.get(submitted.id, REQUESTER).status == S.REJECTED

    def test_stale_partial_payment_cannot_overpay(
        self, make_executor, executor, config_service, submitted, purchase_service,
    ):
        executor.apply_action(submitted.id, "approve", MANAGER)
        racer = make_executor()
        slow = make_executor(config_source=InterleavingConfigSource(
            config_service,
            lambda: racer.apply_action(submitted.id, "pay", FINANCE, {"amount": "150"}),
        ))

        with pytest.raises(ConcurrentTransitionError):
            slow.apply_action(submitted.id, "pay", FINANCE, {"amount": "100"})

        current = purchase_service.get(submitted.id, REQUESTER)
        assert current.paid_amount == Decimal("150")
        assert current.status == S.APPROVED

    def test_loser_writes_no_audit_entry(
        self, make_executor, config_service, submitted, recorder,
    ):
        racer = make_executor()
        slow = make_executor(config_source=InterleavingConfigSource(
            config_service,
            lambda: racer.apply_action(submitted.id, "withdraw", REQUESTER, {"reason": "x"}),
        ))

        with pytest.raises(ConcurrentTransitionError):
            slow.apply_action(submitted.id, "approve", MANAGER)

        assert [e.action for e in recorder.logs_for(submitted.id)] == [
            AuditAction.SUBMIT,
            AuditAction.WITHDRAW,
        ]


# =========================================================================
# True threads
# =========================================================================


@pytest.fixture
def file_session_factory(tmp_path):
    init_engine_from_url(f"sqlite:///{tmp_path / 'race.db'}")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


def _executor(session, config):
    directory = FakeDirectory()
    return WorkflowExecutor(
        session=session,
        permission_gate=FakePermissionGate(),
        role_resolver=DirectoryRoleResolver(directory, EngineSettings().approval_roles),
        directory=directory,
        config_source=StaticConfigSource(config),
        clock=DeterministicClock(),
    )


@pytest.mark.slow_locks
class TestThreadedApprovals:

    APPROVERS = (MANAGER, MANAGER_2, ADMIN)

    def test_exactly_one_approval_wins(self, file_session_factory):
        config = load_workflow_file()
        with file_session_factory() as session:
            service = PurchaseService(session, FakePermissionGate(), DeterministicClock())
            draft = service.create_draft(
                NewPurchase(
                    purchaser_id=REQUESTER.id,
                    organization_type="company",
                    item_name="Desk",
                    quantity=1,
                    unit_price=300,
                    department="ops",
                ),
                REQUESTER,
            )
            _executor(session, config).apply_action(draft.id, "submit", REQUESTER)

        barrier = Barrier(len(self.APPROVERS), timeout=30)

        def approve(actor):
            with file_session_factory() as session:
                executor = _executor(session, config)
                barrier.wait()
                try:
                    executor.apply_action(draft.id, "approve", actor)
                except InvalidTransitionError:
                    return "lost"
                return "won"

        with ThreadPoolExecutor(max_workers=len(self.APPROVERS)) as pool:
            outcomes = list(pool.map(approve, self.APPROVERS))

        assert outcomes.count("won") == 1
        assert outcomes.count("lost") == len(self.APPROVERS) - 1

        with file_session_factory() as session:
            entries = AuditRecorder(session).logs_for(draft.id)
            assert [e.action for e in entries] == [AuditAction.SUBMIT, AuditAction.APPROVE]
            request = PurchaseService(session, FakePermissionGate()).get(draft.id, REQUESTER)
            assert request.status == S.APPROVED
            assert request.version == 3
