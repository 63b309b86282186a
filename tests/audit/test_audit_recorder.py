"""
Audit ledger tests.

Verifies:
- One entry per append, stored verbatim
- Per-request flow log is oldest first with id tie-break
- Cross-request listing filters, searches and paginates newest first
- Entries cannot be updated or deleted through the ORM
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from purchase_kernel.domain.audit import MAX_AUDIT_PAGE_SIZE, AuditQuery
from purchase_kernel.domain.purchase import Actor, AuditAction, PurchaseStatus
from purchase_kernel.exceptions import ImmutabilityViolationError
from purchase_kernel.models.audit_log import PurchaseAuditLogModel

ALICE = Actor(id="u-alice", name="Alice Approver")
BOB = Actor(id="u-bob", name="Bob Buyer")

S = PurchaseStatus


@pytest.fixture
def two_requests(make_draft):
    return make_draft(item_name="Projector"), make_draft(item_name="Laptop stand")


def _append(recorder, request, action, from_status, to_status, operator, at, comment=None):
    return recorder.append(request.id, action, from_status, to_status, operator, at, comment)


# =========================================================================
# Append and per-request log
# =========================================================================


class TestAppend:

    def test_entry_stored_verbatim(self, recorder, make_draft, deterministic_clock):
        draft = make_draft()

        entry = _append(
            recorder, draft, AuditAction.REJECT, S.PENDING_APPROVAL, S.REJECTED,
            ALICE, deterministic_clock.now(), "over budget",
        )

        assert entry.id is not None
        assert entry.action == AuditAction.REJECT
        assert entry.from_status == S.PENDING_APPROVAL
        assert entry.to_status == S.REJECTED
        assert entry.operator_name == "Alice Approver"
        assert entry.comment == "over budget"

    def test_logs_for_oldest_first_with_id_tie_break(
        self, recorder, make_draft, deterministic_clock,
    ):
        draft = make_draft()
        same_tick = deterministic_clock.now()
        first = _append(recorder, draft, AuditAction.SUBMIT, S.DRAFT, S.PENDING_APPROVAL, BOB, same_tick)
        second = _append(
            recorder, draft, AuditAction.APPROVE, S.PENDING_APPROVAL, S.APPROVED, ALICE, same_tick,
        )

        logs = recorder.logs_for(draft.id)

        assert [e.id for e in logs] == [first.id, second.id]

    def test_logs_scoped_to_request(self, recorder, two_requests, deterministic_clock):
        projector, stand = two_requests
        _append(recorder, projector, AuditAction.SUBMIT, S.DRAFT, S.PENDING_APPROVAL, BOB,
                deterministic_clock.now())

        assert len(recorder.logs_for(projector.id)) == 1
        assert recorder.logs_for(stand.id) == ()


# =========================================================================
# Cross-request listing
# =========================================================================


class TestListEntries:

    @pytest.fixture
    def ledger(self, recorder, two_requests, deterministic_clock):
        projector, stand = two_requests
        t0 = deterministic_clock.now()
        _append(recorder, projector, AuditAction.SUBMIT, S.DRAFT, S.PENDING_APPROVAL, BOB, t0)
        _append(recorder, stand, AuditAction.SUBMIT, S.DRAFT, S.PENDING_APPROVAL, BOB,
                t0 + timedelta(minutes=1))
        _append(recorder, projector, AuditAction.APPROVE, S.PENDING_APPROVAL, S.APPROVED, ALICE,
                t0 + timedelta(minutes=2), "fine")
        _append(recorder, stand, AuditAction.REJECT, S.PENDING_APPROVAL, S.REJECTED, ALICE,
                t0 + timedelta(minutes=3), "duplicate order")
        return projector, stand, t0

    def test_newest_first(self, recorder, ledger):
        page = recorder.list_entries(AuditQuery())

        assert page.total == 4
        assert [e.action for e in page.items] == [
            AuditAction.REJECT, AuditAction.APPROVE, AuditAction.SUBMIT, AuditAction.SUBMIT,
        ]

    def test_filter_by_action_and_operator(self, recorder, ledger):
        page = recorder.list_entries(
            AuditQuery(actions=(AuditAction.APPROVE, AuditAction.REJECT), operator_id=ALICE.id)
        )
        assert page.total == 2

    def test_filter_by_purchase_and_window(self, recorder, ledger):
        projector, _, t0 = ledger
        page = recorder.list_entries(
            AuditQuery(purchase_ids=(projector.id,), start=t0 + timedelta(minutes=1))
        )
        assert [e.action for e in page.items] == [AuditAction.APPROVE]

    def test_search_matches_item_and_comment(self, recorder, ledger):
        assert recorder.list_entries(AuditQuery(search="laptop")).total == 2
        assert recorder.list_entries(AuditQuery(search="duplicate")).total == 1
        assert recorder.list_entries(AuditQuery(search="   ")).total == 4

    def test_pagination(self, recorder, ledger):
        page = recorder.list_entries(AuditQuery(page=2, page_size=3))
        assert page.total == 4
        assert len(page.items) == 1
        assert page.items[0].action == AuditAction.SUBMIT

    def test_page_size_clamped(self, recorder, ledger):
        page = recorder.list_entries(AuditQuery(page=0, page_size=10_000))
        assert page.page == 1
        assert page.page_size == MAX_AUDIT_PAGE_SIZE


# =========================================================================
# Immutability
# =========================================================================


class TestAuditImmutability:

    def test_update_rejected(self, recorder, session, make_draft, deterministic_clock):
        draft = make_draft()
        _append(recorder, draft, AuditAction.SUBMIT, S.DRAFT, S.PENDING_APPROVAL, BOB,
                deterministic_clock.now())
        model = session.execute(select(PurchaseAuditLogModel)).scalar_one()

        model.comment = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_rejected(self, recorder, session, make_draft, deterministic_clock):
        draft = make_draft()
        _append(recorder, draft, AuditAction.SUBMIT, S.DRAFT, S.PENDING_APPROVAL, BOB,
                deterministic_clock.now())
        model = session.execute(select(PurchaseAuditLogModel)).scalar_one()

        session.delete(model)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
