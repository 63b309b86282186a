"""
Tests for draft creation, visibility, and duplication.
"""

from decimal import Decimal

import pytest

from purchase_kernel.domain.purchase import NewPurchase, OrganizationType, PurchaseStatus
from purchase_kernel.exceptions import (
    InvalidPurchaseFieldError,
    MissingCapabilityError,
    NotRequestOwnerError,
    UnauthenticatedError,
)
from tests.conftest import ADMIN, FINANCE, MANAGER, OUTSIDER, REQUESTER


def new_purchase(**overrides) -> NewPurchase:
    fields = dict(
        purchaser_id=REQUESTER.id,
        organization_type="company",
        item_name="Chairs",
        quantity=Decimal("4"),
        unit_price=Decimal("75.50"),
        fee_amount=Decimal("12"),
    )
    fields.update(overrides)
    return NewPurchase(**fields)


class TestCreateDraft:

    def test_draft_defaults(self, purchase_service, deterministic_clock):
        draft = purchase_service.create_draft(new_purchase(), REQUESTER)

        assert draft.status == PurchaseStatus.DRAFT
        assert draft.version == 1
        assert draft.creator_id == REQUESTER.id
        assert draft.organization_type == OrganizationType.COMPANY
        assert draft.total_amount == Decimal("314.00")
        assert draft.paid_amount == Decimal("0")
        assert not draft.has_pending_assignment
        assert draft.created_at == deterministic_clock.now()

    def test_item_name_trimmed(self, purchase_service):
        draft = purchase_service.create_draft(new_purchase(item_name="  Chairs "), REQUESTER)
        assert draft.item_name == "Chairs"

    @pytest.mark.parametrize(
        "overrides, code",
        [
            ({"quantity": Decimal("0")}, "INVALID_QUANTITY"),
            ({"quantity": Decimal("-1")}, "INVALID_QUANTITY"),
            ({"quantity": "lots"}, "INVALID_QUANTITY"),
            ({"unit_price": Decimal("-0.01")}, "INVALID_UNIT_PRICE"),
            ({"unit_price": Decimal("Infinity")}, "INVALID_UNIT_PRICE"),
            ({"fee_amount": Decimal("-5")}, "INVALID_FEE_AMOUNT"),
            ({"organization_type": "government"}, "INVALID_ORGANIZATION_TYPE"),
            ({"item_name": "   "}, "MISSING_ITEM_NAME"),
        ],
    )
    def test_field_validation(self, purchase_service, overrides, code):
        with pytest.raises(InvalidPurchaseFieldError) as exc_info:
            purchase_service.create_draft(new_purchase(**overrides), REQUESTER)
        assert exc_info.value.code == code

    def test_free_items_allowed(self, purchase_service):
        draft = purchase_service.create_draft(
            new_purchase(unit_price=Decimal("0"), fee_amount=Decimal("0")), REQUESTER,
        )
        assert draft.total_amount == Decimal("0")

    def test_requires_create_capability(self, purchase_service):
        with pytest.raises(MissingCapabilityError):
            purchase_service.create_draft(new_purchase(), OUTSIDER)

    def test_requires_actor(self, purchase_service):
        with pytest.raises(UnauthenticatedError):
            purchase_service.create_draft(new_purchase(), None)


class TestVisibility:

    def test_owner_and_view_all_can_read(self, purchase_service, make_draft):
        draft = make_draft()
        assert purchase_service.get(draft.id, REQUESTER).id == draft.id
        assert purchase_service.get(draft.id, FINANCE).id == draft.id

    def test_others_cannot_read(self, purchase_service, make_draft):
        draft = make_draft()
        with pytest.raises(NotRequestOwnerError):
            purchase_service.get(draft.id, MANAGER)

    def test_purchaser_can_read(self, purchase_service):
        draft = purchase_service.create_draft(
            new_purchase(purchaser_id=OUTSIDER.id), ADMIN,
        )
        assert purchase_service.get(draft.id, OUTSIDER).purchaser_id == OUTSIDER.id


class TestDuplicate:

    def test_copy_keeps_business_fields(self, purchase_service, make_draft):
        source = make_draft(quantity="3", unit_price="10", fee_amount="1", department="ops")

        copy = purchase_service.duplicate(source.id, REQUESTER)

        assert copy.id != source.id
        assert copy.status == PurchaseStatus.DRAFT
        assert copy.total_amount == source.total_amount
        assert copy.department == "ops"
        assert copy.purchase_number == "PC2024030002"

    def test_view_all_may_duplicate_for_themselves(self, purchase_service, make_draft):
        source = make_draft()
        copy = purchase_service.duplicate(source.id, ADMIN)
        assert copy.creator_id == ADMIN.id
        assert copy.purchaser_id == source.purchaser_id
