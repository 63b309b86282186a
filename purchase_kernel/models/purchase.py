"""
Module: purchase_kernel.models.purchase
Responsibility: ORM persistence for purchase requests.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Status values are limited by a check constraint.
    - ``version`` starts at 1 and is incremented by every conditional
      update (see services/purchase_store.py).  It is the token that lets
      exactly one of two overlapping transitions win.
    - ``purchase_number`` is unique.

Failure modes:
    - IntegrityError on a duplicate purchase_number.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from purchase_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from purchase_kernel.domain.purchase import PurchaseRequest


class PurchaseRequestModel(TrackedBase):
    """Persistent purchase request."""

    __tablename__ = "purchase_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'pending_approval', 'approved', "
            "'pending_inbound', 'rejected', 'paid', 'cancelled')",
            name="ck_purchase_requests_valid_status",
        ),
        CheckConstraint(
            "organization_type IN ('school', 'company')",
            name="ck_purchase_requests_valid_organization",
        ),
        Index("ix_purchase_requests_status", "status"),
        Index("ix_purchase_requests_creator", "creator_id", "created_at"),
        Index(
            "ix_purchase_requests_pending_approver",
            "pending_approver_id", "status",
        ),
        Index(
            "ix_purchase_requests_pending_role",
            "pending_approver_role", "status",
        ),
    )

    purchase_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    purchaser_id: Mapped[str] = mapped_column(String(64), nullable=False)
    organization_type: Mapped[str] = mapped_column(String(20), nullable=False)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    purpose: Mapped[str] = mapped_column(Text, default="", nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    fee_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft")
    reimbursement_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="none",
    )
    pending_approver_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    pending_approver_role: Mapped[str | None] = mapped_column(String(64), nullable=True)
    workflow_node_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    workflow_step_index: Mapped[int | None] = mapped_column(nullable=True)

    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    payment_issue_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_issue_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    invoice_refs: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    submitted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<PurchaseRequest {self.purchase_number} "
            f"status={self.status} v{self.version}>"
        )

    def to_dto(self) -> PurchaseRequest:
        """Convert ORM model to frozen domain DTO."""
        from purchase_kernel.domain.purchase import (
            OrganizationType,
            PurchaseRequest as PurchaseRequestDTO,
            PurchaseStatus,
            ReimbursementStatus,
        )

        return PurchaseRequestDTO(
            id=self.id,
            purchase_number=self.purchase_number,
            creator_id=self.creator_id,
            purchaser_id=self.purchaser_id,
            organization_type=OrganizationType(self.organization_type),
            department=self.department,
            item_name=self.item_name,
            purpose=self.purpose,
            quantity=self.quantity,
            unit_price=self.unit_price,
            fee_amount=self.fee_amount,
            status=PurchaseStatus(self.status),
            reimbursement_status=ReimbursementStatus(self.reimbursement_status),
            pending_approver_id=self.pending_approver_id,
            pending_approver_role=self.pending_approver_role,
            workflow_node_id=self.workflow_node_id,
            workflow_step_index=self.workflow_step_index,
            paid_amount=self.paid_amount,
            payment_issue_open=self.payment_issue_open,
            payment_issue_reason=self.payment_issue_reason,
            invoice_refs=tuple(self.invoice_refs or ()),
            submitted_at=self.submitted_at,
            submitted_by=self.submitted_by,
            approved_at=self.approved_at,
            approved_by=self.approved_by,
            rejected_at=self.rejected_at,
            rejected_by=self.rejected_by,
            rejection_reason=self.rejection_reason,
            paid_at=self.paid_at,
            paid_by=self.paid_by,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
