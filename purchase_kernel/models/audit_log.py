"""
Module: purchase_kernel.models.audit_log
Responsibility: Append-only persistence of purchase workflow transitions.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: ORM listeners reject UPDATE and DELETE of any entry.
    - Insertion order: ``id`` is an auto-increment integer, so entries
      written in the same clock tick still sort deterministically.

Failure modes:
    - ImmutabilityViolationError on UPDATE/DELETE through the ORM.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from purchase_kernel.db.base import Base, UUIDString
from purchase_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from purchase_kernel.domain.audit import AuditLogEntry


class PurchaseAuditLogModel(Base):
    """One row per successful transition."""

    __tablename__ = "purchase_audit_log"

    __table_args__ = (
        Index("ix_purchase_audit_log_purchase", "purchase_id", "created_at"),
        Index("ix_purchase_audit_log_created", "created_at"),
        Index("ix_purchase_audit_log_operator", "operator_id"),
    )

    # SQLite only auto-increments INTEGER PRIMARY KEY
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    purchase_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_requests.id"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    from_status: Mapped[str] = mapped_column(String(30), nullable=False)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    operator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    operator_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<PurchaseAuditLog #{self.id} {self.purchase_id} "
            f"{self.action} {self.from_status}->{self.to_status}>"
        )

    def to_dto(self) -> AuditLogEntry:
        """Convert ORM model to frozen domain DTO."""
        from purchase_kernel.domain.audit import AuditLogEntry as AuditLogEntryDTO
        from purchase_kernel.domain.purchase import AuditAction, PurchaseStatus

        return AuditLogEntryDTO(
            id=self.id,
            purchase_id=self.purchase_id,
            action=AuditAction(self.action),
            from_status=PurchaseStatus(self.from_status),
            to_status=PurchaseStatus(self.to_status),
            operator_id=self.operator_id,
            operator_name=self.operator_name,
            comment=self.comment,
            created_at=self.created_at,
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(PurchaseAuditLogModel, "before_update")
def prevent_audit_log_update(mapper, connection, target):
    """Prevent updates to audit log entries."""
    raise ImmutabilityViolationError(
        entity_type="PurchaseAuditLog",
        entity_id=str(target.id),
        reason="Audit log entries are immutable -- cannot modify",
    )


@event.listens_for(PurchaseAuditLogModel, "before_delete")
def prevent_audit_log_delete(mapper, connection, target):
    """Prevent deletion of audit log entries."""
    raise ImmutabilityViolationError(
        entity_type="PurchaseAuditLog",
        entity_id=str(target.id),
        reason="Audit log entries are immutable -- cannot delete",
    )
