"""
Engine Settings (``purchase_config.settings``).

Responsibility
--------------
Loads the deployment switches (profile, withdraw target, payment and
reimbursement toggles, fallback approver, notification policy) from
``defaults/settings.yaml`` or a caller-supplied file, then applies
environment overrides.

Environment overrides
---------------------
* ``PURCHASE_WORKFLOW_PROFILE`` -- ``simple`` or ``extended``.
* ``PURCHASE_NOTIFY_POLICY_JSON`` -- JSON object replacing ``notify_policy``.
* ``DATABASE_URL`` -- database the services connect to.

Failure modes
-------------
* Unknown profile or withdraw target -> ``ConfigurationError``.
* Malformed ``PURCHASE_NOTIFY_POLICY_JSON`` -> ``ConfigurationError``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from purchase_config.loader import DEFAULT_SETTINGS_FILE, load_yaml_file
from purchase_engines.transitions import TransitionPolicy
from purchase_kernel.domain.collaborators import NotificationEvent
from purchase_kernel.domain.purchase import PurchaseStatus, WorkflowProfile
from purchase_kernel.exceptions import ConfigurationError
from purchase_kernel.logging_config import get_logger

logger = get_logger("config.settings")

ENV_PROFILE = "PURCHASE_WORKFLOW_PROFILE"
ENV_NOTIFY_POLICY = "PURCHASE_NOTIFY_POLICY_JSON"
ENV_DATABASE_URL = "DATABASE_URL"

DEFAULT_DATABASE_URL = "sqlite:///:memory:"

_WITHDRAW_TARGETS = frozenset({PurchaseStatus.CANCELLED, PurchaseStatus.DRAFT})


@dataclass(frozen=True)
class NotifyPolicy:
    """Which notification events are dispatched, and over which channels."""

    enabled: bool = True
    channels: tuple[str, ...] = ("in_app",)
    disabled_events: frozenset[str] = frozenset()

    def allows(self, event: NotificationEvent | str) -> bool:
        name = event.value if isinstance(event, NotificationEvent) else event
        return self.enabled and bool(self.channels) and name not in self.disabled_events

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> NotifyPolicy:
        data = data or {}
        channels = data.get("channels")
        if channels is None:
            channels = ("in_app",)
        return cls(
            enabled=bool(data.get("enabled", True)),
            channels=tuple(str(c) for c in channels),
            disabled_events=frozenset(str(e) for e in data.get("disabled_events") or ()),
        )


@dataclass(frozen=True)
class EngineSettings:
    """Resolved deployment settings."""

    profile: WorkflowProfile = WorkflowProfile.SIMPLE
    withdraw_target: PurchaseStatus = PurchaseStatus.CANCELLED
    payment_enabled: bool = True
    reimbursement_enabled: bool = False
    fallback_approver_role: str | None = None
    resolve_role_to_user: bool = False
    approval_roles: frozenset[str] = frozenset({"department_manager", "finance", "admin"})
    notify_policy: NotifyPolicy = field(default_factory=NotifyPolicy)
    locale: str = "en"
    database_url: str = DEFAULT_DATABASE_URL

    def transition_policy(self) -> TransitionPolicy:
        return TransitionPolicy(
            profile=self.profile,
            payment_enabled=self.payment_enabled,
            reimbursement_enabled=self.reimbursement_enabled,
            withdraw_target=self.withdraw_target,
        )


def _parse_profile(value: Any) -> WorkflowProfile:
    try:
        return WorkflowProfile(str(value).strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"Unknown workflow profile {value!r}; expected 'simple' or 'extended'"
        ) from None


def _parse_withdraw_target(value: Any) -> PurchaseStatus:
    try:
        status = PurchaseStatus(str(value).strip().lower())
    except ValueError:
        status = None
    if status not in _WITHDRAW_TARGETS:
        raise ConfigurationError(
            f"Unknown withdraw target {value!r}; expected 'cancelled' or 'draft'"
        )
    return status


def _parse_notify_policy_json(raw: str) -> NotifyPolicy:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{ENV_NOTIFY_POLICY} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{ENV_NOTIFY_POLICY} must be a JSON object")
    return NotifyPolicy.from_mapping(data)


def settings_from_mapping(
    data: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> EngineSettings:
    """Build settings from a parsed document plus environment overrides."""
    env = os.environ if environ is None else environ

    profile_raw = env.get(ENV_PROFILE) or data.get("profile") or WorkflowProfile.SIMPLE.value
    notify_raw = env.get(ENV_NOTIFY_POLICY)
    notify_policy = (
        _parse_notify_policy_json(notify_raw)
        if notify_raw
        else NotifyPolicy.from_mapping(data.get("notify_policy"))
    )
    roles = data.get("approval_roles")
    fallback = data.get("fallback_approver_role") or None

    settings = EngineSettings(
        profile=_parse_profile(profile_raw),
        withdraw_target=_parse_withdraw_target(
            data.get("withdraw_target") or PurchaseStatus.CANCELLED.value
        ),
        payment_enabled=bool(data.get("payment_enabled", True)),
        reimbursement_enabled=bool(data.get("reimbursement_enabled", False)),
        fallback_approver_role=str(fallback) if fallback else None,
        resolve_role_to_user=bool(data.get("resolve_role_to_user", False)),
        approval_roles=(
            frozenset(str(r) for r in roles)
            if roles is not None
            else EngineSettings.approval_roles
        ),
        notify_policy=notify_policy,
        locale=str(data.get("locale") or "en"),
        database_url=env.get(ENV_DATABASE_URL) or data.get("database_url") or DEFAULT_DATABASE_URL,
    )
    logger.info(
        "engine_settings_loaded",
        extra={
            "profile": settings.profile.value,
            "withdraw_target": settings.withdraw_target.value,
            "payment_enabled": settings.payment_enabled,
            "reimbursement_enabled": settings.reimbursement_enabled,
            "notify_enabled": settings.notify_policy.enabled,
        },
    )
    return settings


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineSettings:
    """Load settings from YAML (default: packaged defaults) plus environment."""
    return settings_from_mapping(load_yaml_file(path or DEFAULT_SETTINGS_FILE), environ)
