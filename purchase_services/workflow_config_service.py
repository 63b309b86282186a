"""
purchase_services.workflow_config_service -- Workflow configuration store.

Responsibility:
    Reads the current workflow configuration (seeding it from the packaged
    YAML default the first time) and replaces it on an administrator's
    save, keeping an append-only revision history.

Architecture position:
    Services layer.  Holds a session; uses purchase_config for parsing,
    validation and checksums.  Implements the WorkflowConfigSource
    protocol consumed by WorkflowExecutor.

Invariants enforced:
    - Reads are fresh: every ``load_workflow_config`` call queries the
      store, so a save is visible to the next action.
    - Saves are full replacements, validated before any write, and bump
      ``version`` by exactly one.
    - Flush-only: the caller owns the transaction.

Failure modes:
    - UnauthenticatedError / MissingCapabilityError on save.
    - WorkflowConfigInvalidError when validation reports errors.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from purchase_config.loader import (
    DEFAULT_WORKFLOW_FILE,
    compute_checksum,
    load_yaml_file,
    parse_workflow_document,
    workflow_to_document,
)
from purchase_config.validator import validate_workflow_document
from purchase_kernel.domain.clock import Clock, SystemClock
from purchase_kernel.domain.collaborators import PermissionGate
from purchase_kernel.domain.purchase import Actor, Capability
from purchase_kernel.domain.workflow import DEFAULT_WORKFLOW_KEY, WorkflowConfig
from purchase_kernel.exceptions import MissingCapabilityError, WorkflowConfigInvalidError
from purchase_kernel.logging_config import get_logger
from purchase_kernel.models.workflow_config import (
    WorkflowConfigModel,
    WorkflowConfigRevisionModel,
)
from purchase_services.authorization import require_actor, require_capability

logger = get_logger("services.workflow_config")

SEED_ACTOR_ID = "system"


class WorkflowConfigService:
    """Load and save the workflow configuration for one key."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        permission_gate: PermissionGate | None = None,
        config_key: str = DEFAULT_WORKFLOW_KEY,
        seed_path: Path = DEFAULT_WORKFLOW_FILE,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._gate = permission_gate
        self._key = config_key
        self._seed_path = seed_path

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def _model(self) -> WorkflowConfigModel | None:
        return self._session.execute(
            select(WorkflowConfigModel)
            .where(WorkflowConfigModel.config_key == self._key)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _seed(self) -> WorkflowConfigModel:
        document = load_yaml_file(self._seed_path)
        config = parse_workflow_document({**document, "key": self._key, "version": 1})
        model = self._write(None, config, SEED_ACTOR_ID)
        logger.info(
            "workflow_config_seeded",
            extra={"config_key": self._key, "checksum": model.checksum},
        )
        return model

    def load_workflow_config(self) -> WorkflowConfig:
        model = self._model() or self._seed()
        return _to_config(model)

    load = load_workflow_config

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def save_config(self, data: Mapping[str, Any], actor: Actor | None) -> WorkflowConfig:
        """Validate and replace the configuration.

        Returns:
            The saved configuration with its new version and checksum.
        """
        actor = require_actor(actor, "save_config")
        # No gate configured means nobody may reconfigure
        if self._gate is None:
            raise MissingCapabilityError(actor.id, Capability.WORKFLOW_CONFIGURE.value)
        require_capability(self._gate, actor, Capability.WORKFLOW_CONFIGURE)

        result = validate_workflow_document(data)
        if not result.is_valid:
            logger.warning(
                "workflow_config_rejected",
                extra={"config_key": self._key, "errors": result.errors},
            )
            raise WorkflowConfigInvalidError(result.errors)
        for warning in result.warnings:
            logger.warning(
                "workflow_config_warning",
                extra={"config_key": self._key, "warning": warning},
            )

        existing = self._model() or self._seed()
        config = parse_workflow_document({**data, "key": self._key})
        model = self._write(existing, config, actor.id)
        logger.info(
            "workflow_config_saved",
            extra={
                "config_key": self._key,
                "version": model.version,
                "checksum": model.checksum,
                "node_count": len(config.nodes),
            },
        )
        return _to_config(model)

    def revisions(self) -> tuple[WorkflowConfigRevisionModel, ...]:
        rows = self._session.execute(
            select(WorkflowConfigRevisionModel)
            .where(WorkflowConfigRevisionModel.config_key == self._key)
            .order_by(WorkflowConfigRevisionModel.version)
        ).scalars().all()
        return tuple(rows)

    def _write(
        self,
        existing: WorkflowConfigModel | None,
        config: WorkflowConfig,
        actor_id: str,
    ) -> WorkflowConfigModel:
        now: datetime = self._clock.now()
        document = workflow_to_document(config)
        checksum = compute_checksum(document)

        if existing is None:
            model = WorkflowConfigModel(
                config_key=self._key,
                name=config.name,
                enabled=config.enabled,
                version=1,
                nodes=document["nodes"],
                edges=document["edges"],
                checksum=checksum,
                updated_by=actor_id,
                created_at=now,
                updated_at=now,
            )
            self._session.add(model)
        else:
            model = existing
            model.name = config.name
            model.enabled = config.enabled
            model.version = existing.version + 1
            model.nodes = document["nodes"]
            model.edges = document["edges"]
            model.checksum = checksum
            model.updated_by = actor_id
            model.updated_at = now

        self._session.add(WorkflowConfigRevisionModel(
            config_key=self._key,
            version=model.version,
            document=document,
            checksum=checksum,
            saved_by=actor_id,
            saved_at=now,
        ))
        self._session.flush()
        return model


def _to_config(model: WorkflowConfigModel) -> WorkflowConfig:
    config = parse_workflow_document(model.to_document())
    return WorkflowConfig(
        key=config.key,
        name=config.name,
        enabled=config.enabled,
        version=model.version,
        nodes=config.nodes,
        edges=config.edges,
        checksum=model.checksum,
        updated_at=model.updated_at,
        updated_by=model.updated_by,
    )
