"""
purchase_services.notification -- Best-effort notification dispatch.

Responsibility:
    Wraps the host application's NotificationDispatcher so that a
    committed transition can never be undone or reported as failed by a
    notification problem.  Applies the deployment notify policy first.

Architecture position:
    Services layer.  Called by WorkflowExecutor strictly after commit.

Invariants enforced:
    - ``send`` never raises.  Dispatcher failures are logged as
      ``notification_failed`` and reported through the return value.
    - Events disabled by policy are skipped without calling the dispatcher.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from purchase_config.settings import NotifyPolicy
from purchase_kernel.domain.collaborators import NotificationDispatcher, NotificationEvent
from purchase_kernel.domain.purchase import PurchaseRequest
from purchase_kernel.logging_config import get_logger

logger = get_logger("services.notification")


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class PurchaseNotifier:
    """Policy-aware, failure-isolating front for a NotificationDispatcher."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher | None,
        policy: NotifyPolicy | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._policy = policy or NotifyPolicy()

    @property
    def policy(self) -> NotifyPolicy:
        return self._policy

    def send(
        self,
        event: NotificationEvent,
        request: PurchaseRequest,
        context: Mapping[str, Any] | None = None,
    ) -> DeliveryOutcome:
        if self._dispatcher is None or not self._policy.allows(event):
            logger.debug(
                "notification_skipped",
                extra={"event": event.value, "purchase_number": request.purchase_number},
            )
            return DeliveryOutcome.SKIPPED

        payload = dict(context or {})
        payload.setdefault("channels", list(self._policy.channels))
        try:
            self._dispatcher.notify(event, request, payload)
        except Exception:
            logger.warning(
                "notification_failed",
                extra={"event": event.value, "purchase_number": request.purchase_number},
                exc_info=True,
            )
            return DeliveryOutcome.FAILED

        logger.info(
            "notification_sent",
            extra={"event": event.value, "purchase_number": request.purchase_number},
        )
        return DeliveryOutcome.SENT
