"""
purchase_services.purchase_service -- Draft creation, lookup, duplication.

Responsibility:
    The non-transition entry points around a purchase request: create a
    draft with validated business fields, read a request the actor may
    see, and duplicate an existing request into a fresh draft.

Architecture position:
    Services layer.  Uses PurchaseStore for persistence and the injected
    PermissionGate for capability checks.

Invariants enforced:
    - quantity > 0; unit_price >= 0; fee_amount >= 0; all finite.
    - organization_type is ``school`` or ``company``; item_name non-blank.
    - New drafts start at version 1, status draft, nothing paid.
    - Purchase numbers are ``PC{YYYY}{MM}{seq:04d}`` from the clock's month.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from purchase_kernel.domain.clock import Clock, SystemClock
from purchase_kernel.domain.collaborators import PermissionGate
from purchase_kernel.domain.purchase import (
    Actor,
    Capability,
    NewPurchase,
    OrganizationType,
    PurchaseRequest,
    PurchaseStatus,
    ReimbursementStatus,
)
from purchase_kernel.exceptions import InvalidPurchaseFieldError, NotRequestOwnerError
from purchase_kernel.logging_config import LogContext, get_logger
from purchase_kernel.models.purchase import PurchaseRequestModel
from purchase_kernel.services.purchase_store import PurchaseStore
from purchase_services.authorization import has_capability, require_actor, require_capability
from purchase_services.unit_of_work import unit_of_work

logger = get_logger("services.purchase")

ZERO = Decimal("0")


def _decimal(field_name: str, value: Any) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidPurchaseFieldError(field_name, str(value), "not a number") from None
    if not amount.is_finite():
        raise InvalidPurchaseFieldError(field_name, str(value), "must be finite")
    return amount


def validate_new_purchase(new: NewPurchase) -> tuple[OrganizationType, Decimal, Decimal, Decimal]:
    """Check draft fields; return the parsed organization and amounts."""
    if not (new.item_name or "").strip():
        raise InvalidPurchaseFieldError("item_name", new.item_name or "", "must not be blank")

    try:
        organization = OrganizationType(new.organization_type)
    except ValueError:
        raise InvalidPurchaseFieldError(
            "organization_type", str(new.organization_type), "must be school or company",
        ) from None

    quantity = _decimal("quantity", new.quantity)
    if quantity <= ZERO:
        raise InvalidPurchaseFieldError("quantity", str(quantity), "must be greater than zero")
    unit_price = _decimal("unit_price", new.unit_price)
    if unit_price < ZERO:
        raise InvalidPurchaseFieldError("unit_price", str(unit_price), "must not be negative")
    fee_amount = _decimal("fee_amount", new.fee_amount if new.fee_amount is not None else ZERO)
    if fee_amount < ZERO:
        raise InvalidPurchaseFieldError("fee_amount", str(fee_amount), "must not be negative")
    return organization, quantity, unit_price, fee_amount


class PurchaseService:
    """Create, read and duplicate purchase requests."""

    def __init__(
        self,
        session: Session,
        permission_gate: PermissionGate,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ) -> None:
        self._session = session
        self._gate = permission_gate
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._store = PurchaseStore(session)

    def create_draft(self, new: NewPurchase, actor: Actor | None) -> PurchaseRequest:
        actor = require_actor(actor, "create")
        require_capability(self._gate, actor, Capability.PURCHASE_CREATE)
        organization, quantity, unit_price, fee_amount = validate_new_purchase(new)

        with unit_of_work(self._session, self._auto_commit):
            request = self._insert(
                actor,
                purchaser_id=new.purchaser_id or actor.id,
                organization=organization,
                item_name=new.item_name.strip(),
                quantity=quantity,
                unit_price=unit_price,
                fee_amount=fee_amount,
                purpose=new.purpose or "",
                department=new.department,
            )
        logger.info(
            "purchase_draft_created",
            extra={
                "purchase_number": request.purchase_number,
                "total_amount": request.total_amount,
                "organization_type": request.organization_type.value,
            },
        )
        return request

    def get(self, purchase_id: UUID, actor: Actor | None) -> PurchaseRequest:
        """Load a request the actor may see.

        Visible to the creator, the purchaser, and holders of view-all.
        """
        request = self._store.get(purchase_id)
        actor = require_actor(actor, "view")
        if not self.can_view(request, actor):
            raise NotRequestOwnerError(actor.id, str(request.id), "view")
        return request

    def can_view(self, request: PurchaseRequest, actor: Actor) -> bool:
        if actor.id in (request.creator_id, request.purchaser_id):
            return True
        return has_capability(self._gate, actor, Capability.PURCHASE_VIEW_ALL)

    def duplicate(self, purchase_id: UUID, actor: Actor | None) -> PurchaseRequest:
        """Copy a request's business fields into a new draft owned by ``actor``."""
        source = self._store.get(purchase_id)
        actor = require_actor(actor, "duplicate")
        require_capability(self._gate, actor, Capability.PURCHASE_CREATE)
        if not (
            source.is_owned_by(actor.id)
            or has_capability(self._gate, actor, Capability.PURCHASE_VIEW_ALL)
        ):
            raise NotRequestOwnerError(actor.id, str(source.id), "duplicate")

        with LogContext.bind(purchase_id=str(source.id), actor_id=actor.id, action="duplicate"):
            with unit_of_work(self._session, self._auto_commit):
                copy = self._insert(
                    actor,
                    purchaser_id=source.purchaser_id,
                    organization=source.organization_type,
                    item_name=source.item_name,
                    quantity=source.quantity,
                    unit_price=source.unit_price,
                    fee_amount=source.fee_amount,
                    purpose=source.purpose,
                    department=source.department,
                )
            logger.info(
                "purchase_duplicated",
                extra={
                    "source_number": source.purchase_number,
                    "purchase_number": copy.purchase_number,
                },
            )
        return copy

    def _insert(
        self,
        actor: Actor,
        *,
        purchaser_id: str,
        organization: OrganizationType,
        item_name: str,
        quantity: Decimal,
        unit_price: Decimal,
        fee_amount: Decimal,
        purpose: str,
        department: str | None,
    ) -> PurchaseRequest:
        now = self._clock.now()
        model = PurchaseRequestModel(
            purchase_number=self._store.next_purchase_number(now),
            creator_id=actor.id,
            purchaser_id=purchaser_id,
            organization_type=organization.value,
            department=department,
            item_name=item_name,
            purpose=purpose,
            quantity=quantity,
            unit_price=unit_price,
            fee_amount=fee_amount,
            status=PurchaseStatus.DRAFT.value,
            reimbursement_status=ReimbursementStatus.NONE.value,
            paid_amount=ZERO,
            payment_issue_open=False,
            invoice_refs=[],
            version=1,
            created_at=now,
            updated_at=now,
        )
        return self._store.insert(model)
