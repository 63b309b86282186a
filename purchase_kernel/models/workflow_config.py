"""
Module: purchase_kernel.models.workflow_config
Responsibility: Persistence of the workflow configuration singleton and
    its revision history.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per configuration key (``purchase_default`` in practice).
    - Revisions are append-only: every save writes a new revision row
      carrying the document and its checksum.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Index, String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from purchase_kernel.db.base import Base, TrackedBase
from purchase_kernel.exceptions import ImmutabilityViolationError


class WorkflowConfigModel(TrackedBase):
    """Current workflow configuration.  Nodes and edges stored as JSON."""

    __tablename__ = "workflow_config"

    config_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    nodes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    edges: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<WorkflowConfig {self.config_key} v{self.version} enabled={self.enabled}>"

    def to_document(self) -> dict[str, Any]:
        """Raw document in the same shape the YAML loader accepts."""
        return {
            "key": self.config_key,
            "name": self.name,
            "enabled": self.enabled,
            "version": self.version,
            "nodes": list(self.nodes or []),
            "edges": list(self.edges or []),
        }


class WorkflowConfigRevisionModel(Base):
    """Append-only history of saved configurations."""

    __tablename__ = "workflow_config_revisions"

    __table_args__ = (
        UniqueConstraint("config_key", "version", name="uq_workflow_config_revision"),
        Index("ix_workflow_config_revisions_key", "config_key", "version"),
    )

    config_key: Mapped[str] = mapped_column(String(64), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False)
    document: Mapped[dict] = mapped_column(JSON, nullable=False)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    saved_by: Mapped[str] = mapped_column(String(64), nullable=False)
    saved_at: Mapped[datetime] = mapped_column(nullable=False)


@event.listens_for(WorkflowConfigRevisionModel, "before_update")
def prevent_revision_update(mapper, connection, target):
    """Prevent updates to configuration revisions."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowConfigRevision",
        entity_id=f"{target.config_key}@{target.version}",
        reason="Configuration revisions are immutable -- cannot modify",
    )


@event.listens_for(WorkflowConfigRevisionModel, "before_delete")
def prevent_revision_delete(mapper, connection, target):
    """Prevent deletion of configuration revisions."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowConfigRevision",
        entity_id=f"{target.config_key}@{target.version}",
        reason="Configuration revisions are immutable -- cannot delete",
    )
