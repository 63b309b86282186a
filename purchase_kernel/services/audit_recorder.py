"""
AuditRecorder -- append-only ledger of purchase transitions.

Responsibility:
    Writes exactly one audit entry per successful transition and serves
    the two read paths built on top of it: the per-request flow log
    (oldest first) and the cross-request activity listing (newest first,
    filtered and paginated).

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - The recorder is the only writer of ``purchase_audit_log``; entries
      are never updated or deleted (ORM listeners back this up).
    - ``from_status``/``to_status`` are stored verbatim as given.
    - Ordering ties on ``created_at`` are broken by the auto-increment id.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from purchase_kernel.domain.audit import AuditLogEntry, AuditPage, AuditQuery
from purchase_kernel.domain.purchase import Actor, AuditAction, PurchaseStatus
from purchase_kernel.logging_config import get_logger
from purchase_kernel.models.audit_log import PurchaseAuditLogModel
from purchase_kernel.models.purchase import PurchaseRequestModel

logger = get_logger("services.audit_recorder")


class AuditRecorder:
    """Append and query purchase audit log entries."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(
        self,
        purchase_id: UUID,
        action: AuditAction,
        from_status: PurchaseStatus,
        to_status: PurchaseStatus,
        operator: Actor,
        created_at: datetime,
        comment: str | None = None,
    ) -> AuditLogEntry:
        model = PurchaseAuditLogModel(
            purchase_id=purchase_id,
            action=action.value,
            from_status=from_status.value,
            to_status=to_status.value,
            operator_id=operator.id,
            operator_name=operator.name,
            comment=comment,
            created_at=created_at,
        )
        self._session.add(model)
        self._session.flush()

        logger.debug(
            "audit_entry_appended",
            extra={
                "audit_id": model.id,
                "audit_action": action.value,
                "from_status": from_status.value,
                "to_status": to_status.value,
            },
        )
        return model.to_dto()

    def logs_for(self, purchase_id: UUID) -> tuple[AuditLogEntry, ...]:
        """All entries for one request, oldest first."""
        rows = self._session.execute(
            select(PurchaseAuditLogModel)
            .where(PurchaseAuditLogModel.purchase_id == purchase_id)
            .order_by(
                PurchaseAuditLogModel.created_at.asc(),
                PurchaseAuditLogModel.id.asc(),
            )
        ).scalars().all()
        return tuple(r.to_dto() for r in rows)

    def list_entries(self, query: AuditQuery) -> AuditPage:
        """Cross-request activity listing, newest first."""
        conditions = []
        if query.actions:
            conditions.append(
                PurchaseAuditLogModel.action.in_([a.value for a in query.actions])
            )
        if query.operator_id:
            conditions.append(PurchaseAuditLogModel.operator_id == query.operator_id)
        if query.purchase_ids:
            conditions.append(PurchaseAuditLogModel.purchase_id.in_(query.purchase_ids))
        if query.start is not None:
            conditions.append(PurchaseAuditLogModel.created_at >= query.start)
        if query.end is not None:
            conditions.append(PurchaseAuditLogModel.created_at <= query.end)
        if query.search and query.search.strip():
            pattern = f"%{query.search.strip()}%"
            conditions.append(
                or_(
                    PurchaseRequestModel.purchase_number.ilike(pattern),
                    PurchaseRequestModel.item_name.ilike(pattern),
                    PurchaseAuditLogModel.operator_name.ilike(pattern),
                    PurchaseAuditLogModel.comment.ilike(pattern),
                )
            )

        base = (
            select(PurchaseAuditLogModel)
            .join(
                PurchaseRequestModel,
                PurchaseRequestModel.id == PurchaseAuditLogModel.purchase_id,
            )
            .where(*conditions)
        )
        total = self._session.execute(
            select(func.count()).select_from(base.subquery())
        ).scalar_one()

        page = query.effective_page
        page_size = query.effective_page_size
        rows = self._session.execute(
            base.order_by(
                PurchaseAuditLogModel.created_at.desc(),
                PurchaseAuditLogModel.id.desc(),
            )
            .limit(page_size)
            .offset((page - 1) * page_size)
        ).scalars().all()

        return AuditPage(
            items=tuple(r.to_dto() for r in rows),
            total=total,
            page=page,
            page_size=page_size,
        )
