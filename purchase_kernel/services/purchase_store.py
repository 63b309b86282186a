"""
PurchaseStore -- load and conditionally update purchase requests.

Responsibility:
    The data-layer half of the state machine: load a request by id,
    insert new drafts, allocate purchase numbers, and apply a computed
    transition with a compare-and-set UPDATE.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Idempotent-once transitions: ``compare_and_set`` only updates the
      row when both ``status`` and ``version`` still match what the caller
      read.  Two overlapping transitions from the same snapshot therefore
      produce exactly one winner; the loser sees a row count of zero.
    - Flush-only: the store never commits.  The caller owns the
      transaction so the request update and its audit entry land together.

Failure modes:
    - PurchaseNotFoundError if the id does not exist.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from purchase_kernel.domain.purchase import PurchaseRequest, PurchaseStatus
from purchase_kernel.exceptions import PurchaseNotFoundError
from purchase_kernel.logging_config import get_logger
from purchase_kernel.models.purchase import PurchaseRequestModel

logger = get_logger("services.purchase_store")

PURCHASE_NUMBER_PREFIX = "PC"


def format_purchase_number(at: datetime, sequence: int) -> str:
    """PC{YYYY}{MM}{seq:04d}, sequence restarting every month."""
    return f"{PURCHASE_NUMBER_PREFIX}{at.year:04d}{at.month:02d}{sequence:04d}"


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return list(value)
    return value


class PurchaseStore:
    """Persistence gateway for purchase requests."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, purchase_id: UUID) -> PurchaseRequest:
        """Load a request snapshot, bypassing any stale identity-map copy."""
        model = self._session.execute(
            select(PurchaseRequestModel)
            .where(PurchaseRequestModel.id == purchase_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise PurchaseNotFoundError(str(purchase_id))
        return model.to_dto()

    def exists(self, purchase_id: UUID) -> bool:
        return self._session.execute(
            select(func.count())
            .select_from(PurchaseRequestModel)
            .where(PurchaseRequestModel.id == purchase_id)
        ).scalar_one() > 0

    def insert(self, model: PurchaseRequestModel) -> PurchaseRequest:
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def next_purchase_number(self, at: datetime) -> str:
        """Allocate the next number for ``at``'s month.

        Sequences past 9999 grow a fifth digit, so the latest number is the
        longest one first and the highest one second.  Uniqueness is finally
        guaranteed by the column's UNIQUE constraint.
        """
        prefix = f"{PURCHASE_NUMBER_PREFIX}{at.year:04d}{at.month:02d}"
        number = PurchaseRequestModel.purchase_number
        latest = self._session.execute(
            select(number)
            .where(number.like(f"{prefix}%"))
            .order_by(func.length(number).desc(), number.desc())
            .limit(1)
        ).scalar_one_or_none()
        sequence = 1
        if latest:
            sequence = int(latest[len(prefix):]) + 1
        return format_purchase_number(at, sequence)

    def compare_and_set(
        self,
        purchase_id: UUID,
        expected_status: PurchaseStatus,
        expected_version: int,
        changes: Mapping[str, Any],
        now: datetime,
    ) -> PurchaseRequest | None:
        """Apply ``changes`` iff status and version are unchanged.

        Returns:
            The updated snapshot, or None when another transition won.
        """
        values = {key: _column_value(val) for key, val in changes.items()}
        values["version"] = PurchaseRequestModel.version + 1
        values["updated_at"] = now

        result = self._session.execute(
            update(PurchaseRequestModel)
            .where(
                PurchaseRequestModel.id == purchase_id,
                PurchaseRequestModel.status == expected_status.value,
                PurchaseRequestModel.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "purchase_compare_and_set_missed",
                extra={
                    "purchase_id": str(purchase_id),
                    "expected_status": expected_status.value,
                    "expected_version": expected_version,
                },
            )
            return None
        return self.get(purchase_id)
