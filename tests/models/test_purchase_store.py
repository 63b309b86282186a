"""
Tests for PurchaseStore: loading, purchase number allocation, and the
compare-and-set update that serializes competing transitions.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import update

from purchase_kernel.domain.purchase import PurchaseStatus
from purchase_kernel.exceptions import PurchaseNotFoundError
from purchase_kernel.models.purchase import PurchaseRequestModel
from purchase_kernel.services.purchase_store import PurchaseStore, format_purchase_number

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(session):
    return PurchaseStore(session)


class TestPurchaseNumbers:

    def test_format(self):
        assert format_purchase_number(NOW, 7) == "PC2024030007"

    def test_first_number_of_month(self, store):
        assert store.next_purchase_number(NOW) == "PC2024030001"

    def test_sequence_increments_within_month(self, make_draft):
        first = make_draft()
        second = make_draft()
        assert first.purchase_number == "PC2024030001"
        assert second.purchase_number == "PC2024030002"

    def test_sequence_restarts_next_month(self, make_draft, store):
        make_draft()
        april = datetime(2024, 4, 2, tzinfo=timezone.utc)
        assert store.next_purchase_number(april) == "PC2024040001"

    def test_five_digit_sequence_sorts_after_four_digits(self, make_draft, store, session):
        renumber = {make_draft().id: "PC2024039999", make_draft().id: "PC20240310000"}
        for purchase_id, number in renumber.items():
            session.execute(
                update(PurchaseRequestModel)
                .where(PurchaseRequestModel.id == purchase_id)
                .values(purchase_number=number)
            )

        assert store.next_purchase_number(NOW) == "PC20240310001"

    def test_sequence_past_9999_continues(self, make_draft, store, session):
        session.execute(
            update(PurchaseRequestModel)
            .where(PurchaseRequestModel.id == make_draft().id)
            .values(purchase_number="PC2024039999")
        )
        assert store.next_purchase_number(NOW) == "PC20240310000"


class TestLoad:

    def test_get_round_trips_decimals(self, make_draft, store):
        draft = make_draft(quantity="3", unit_price="19.99", fee_amount="0.03")

        loaded = store.get(draft.id)

        assert loaded.quantity == Decimal("3")
        assert loaded.unit_price == Decimal("19.99")
        assert loaded.total_amount == Decimal("60.00")
        assert loaded.status == PurchaseStatus.DRAFT
        assert loaded.version == 1

    def test_missing_id(self, store):
        with pytest.raises(PurchaseNotFoundError):
            store.get(uuid4())
        assert not store.exists(uuid4())


class TestCompareAndSet:

    def test_matching_snapshot_wins(self, make_draft, store):
        draft = make_draft()

        updated = store.compare_and_set(
            draft.id,
            PurchaseStatus.DRAFT,
            draft.version,
            {"status": PurchaseStatus.CANCELLED},
            NOW,
        )

        assert updated is not None
        assert updated.status == PurchaseStatus.CANCELLED
        assert updated.version == draft.version + 1

    def test_stale_version_loses(self, make_draft, store):
        draft = make_draft()
        store.compare_and_set(
            draft.id, PurchaseStatus.DRAFT, draft.version, {"purpose": "edited"}, NOW,
        )

        result = store.compare_and_set(
            draft.id,
            PurchaseStatus.DRAFT,
            draft.version,
            {"status": PurchaseStatus.CANCELLED},
            NOW,
        )

        assert result is None
        assert store.get(draft.id).status == PurchaseStatus.DRAFT

    def test_stale_status_loses(self, make_draft, store, captured_logs):
        draft = make_draft()

        result = store.compare_and_set(
            draft.id,
            PurchaseStatus.PENDING_APPROVAL,
            draft.version,
            {"status": PurchaseStatus.APPROVED},
            NOW,
        )

        assert result is None
        assert any(
            r["message"] == "purchase_compare_and_set_missed" for r in captured_logs()
        )

    def test_tuple_values_stored_as_lists(self, make_draft, store):
        draft = make_draft()

        updated = store.compare_and_set(
            draft.id, PurchaseStatus.DRAFT, draft.version,
            {"invoice_refs": ("INV-1", "INV-2")}, NOW,
        )

        assert updated.invoice_refs == ("INV-1", "INV-2")
