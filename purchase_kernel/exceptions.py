"""
Typed Exception Hierarchy for the Purchase Workflow.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow (HTTP adapters, batch tools, tests) must react to
failures precisely. Every failure therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Has a KIND attribute (one of the eight caller-facing ErrorKind values)
  4. Carries structured DATA (not just a message string)

Example - RIGHT way:
    try:
        executor.apply_action(purchase_id, WorkflowAction.APPROVE, actor, payload)
    except InvalidTransitionError as e:
        respond(409, code=e.code, action=e.action, status=e.status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from PurchaseWorkflowError:

    PurchaseWorkflowError (base)
    |
    +-- UnauthenticatedError                    kind=Unauthenticated
    |
    +-- AuthorizationError                      kind=Forbidden
    |   +-- MissingCapabilityError
    |   +-- NotRequestOwnerError
    |   +-- NotPendingApproverError
    |
    +-- NotFoundError                           kind=NotFound
    |   +-- PurchaseNotFoundError
    |   +-- TransferTargetNotFoundError
    |
    +-- InvalidTransitionError                  kind=InvalidTransition
    |   +-- ConcurrentTransitionError
    |
    +-- WorkflowValidationError                 kind=ValidationError
    |   +-- ReasonRequiredError
    |   +-- TransferTargetRequiredError
    |   +-- SelfTransferError
    |   +-- TransferTargetNotApproverError
    |   +-- InvalidPaymentAmountError
    |   +-- PaymentExceedsRemainingError
    |   +-- InvoiceRequiredError
    |   +-- UnknownActionError
    |   +-- InvalidPurchaseFieldError
    |
    +-- NoApplicableApproverError               kind=NoApplicableApprover
    |
    +-- ConfigurationError                      kind=ConfigurationError
    |   +-- WorkflowConfigInvalidError
    |
    +-- DownstreamFailureError                  kind=DownstreamFailure
    |
    +-- ImmutabilityViolationError              kind=Forbidden

===============================================================================
DESIGN DECISIONS
===============================================================================

1. ``code`` and ``kind`` are CLASS attributes. Codes are static per type,
   so ``PurchaseNotFoundError.code`` works without instantiation.

2. Every precondition failure is raised BEFORE any write happens. A raised
   exception never leaves a half-applied transition behind.

3. ``DownstreamFailureError`` is the only kind that never escapes a
   committed transition: the notification boundary catches and logs it.

===============================================================================
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Caller-facing error categories."""

    UNAUTHENTICATED = "Unauthenticated"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    INVALID_TRANSITION = "InvalidTransition"
    VALIDATION = "ValidationError"
    NO_APPLICABLE_APPROVER = "NoApplicableApprover"
    CONFIGURATION = "ConfigurationError"
    DOWNSTREAM_FAILURE = "DownstreamFailure"


class PurchaseWorkflowError(Exception):
    """
    Base exception for all purchase workflow errors.

    All subclasses must have ``code`` and ``kind`` class attributes.
    """

    code: str = "PURCHASE_WORKFLOW_ERROR"
    kind: ErrorKind = ErrorKind.DOWNSTREAM_FAILURE


# Authentication / authorization


class UnauthenticatedError(PurchaseWorkflowError):
    """No authenticated actor accompanied the request."""

    code: str = "UNAUTHENTICATED"
    kind: ErrorKind = ErrorKind.UNAUTHENTICATED

    def __init__(self, action: str | None = None):
        self.action = action
        super().__init__("Authentication required")


class AuthorizationError(PurchaseWorkflowError):
    """Base exception for actor eligibility failures."""

    code: str = "FORBIDDEN"
    kind: ErrorKind = ErrorKind.FORBIDDEN


class MissingCapabilityError(AuthorizationError):
    """Actor lacks the capability the action requires."""

    code: str = "MISSING_CAPABILITY"

    def __init__(self, actor_id: str, capability: str):
        self.actor_id = actor_id
        self.capability = capability
        super().__init__(f"Actor {actor_id} lacks capability '{capability}'")


class NotRequestOwnerError(AuthorizationError):
    """Owner-only action attempted by someone other than the owner."""

    code: str = "NOT_REQUEST_OWNER"

    def __init__(self, actor_id: str, purchase_id: str, action: str):
        self.actor_id = actor_id
        self.purchase_id = purchase_id
        self.action = action
        super().__init__(
            f"Actor {actor_id} does not own purchase {purchase_id} "
            f"and cannot {action} it"
        )


class NotPendingApproverError(AuthorizationError):
    """Actor is not the pending approver (or pending approver role holder)."""

    code: str = "NOT_PENDING_APPROVER"

    def __init__(
        self,
        actor_id: str,
        purchase_id: str,
        pending_approver_id: str | None = None,
        pending_approver_role: str | None = None,
    ):
        self.actor_id = actor_id
        self.purchase_id = purchase_id
        self.pending_approver_id = pending_approver_id
        self.pending_approver_role = pending_approver_role
        target = pending_approver_id or f"role {pending_approver_role}"
        super().__init__(
            f"Actor {actor_id} is not the pending approver of purchase "
            f"{purchase_id} (expected {target})"
        )


# Lookup failures


class NotFoundError(PurchaseWorkflowError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class PurchaseNotFoundError(NotFoundError):
    """Purchase request with the given id does not exist."""

    code: str = "PURCHASE_NOT_FOUND"

    def __init__(self, purchase_id: str):
        self.purchase_id = purchase_id
        super().__init__(f"Purchase request not found: {purchase_id}")


class TransferTargetNotFoundError(NotFoundError):
    """Transfer target employee does not exist."""

    code: str = "TRANSFER_TARGET_NOT_FOUND"

    def __init__(self, target_id: str):
        self.target_id = target_id
        super().__init__(f"Transfer target not found: {target_id}")


# State machine failures


class InvalidTransitionError(PurchaseWorkflowError):
    """Action is not legal from the request's current status."""

    code: str = "INVALID_TRANSITION"
    kind: ErrorKind = ErrorKind.INVALID_TRANSITION

    def __init__(self, action: str, status: str, reason: str | None = None):
        self.action = action
        self.status = status
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Action '{action}' is not allowed from status '{status}'{detail}"
        )


class ConcurrentTransitionError(InvalidTransitionError):
    """
    A competing transition committed first.

    Raised when the conditional update matches zero rows because the
    request's status or version moved between read and write.
    """

    code: str = "CONCURRENT_TRANSITION"

    def __init__(self, purchase_id: str, action: str, expected_status: str):
        self.purchase_id = purchase_id
        super().__init__(
            action,
            expected_status,
            reason=f"purchase {purchase_id} was modified by another transition",
        )


# Payload validation


class WorkflowValidationError(PurchaseWorkflowError):
    """Base exception for malformed action payloads."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


class ReasonRequiredError(WorkflowValidationError):
    """Action requires a non-empty reason/comment."""

    code: str = "REASON_REQUIRED"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"A non-empty reason is required to {action}")


class TransferTargetRequiredError(WorkflowValidationError):
    """Transfer without a target approver."""

    code: str = "TRANSFER_TARGET_REQUIRED"

    def __init__(self):
        super().__init__("Transfer requires a target approver")


class SelfTransferError(WorkflowValidationError):
    """Actor tried to transfer approval to themself."""

    code: str = "SELF_TRANSFER"

    def __init__(self, actor_id: str):
        self.actor_id = actor_id
        super().__init__(f"Actor {actor_id} cannot transfer approval to themself")


class TransferTargetNotApproverError(WorkflowValidationError):
    """Transfer target holds no approval-capable role."""

    code: str = "TRANSFER_TARGET_NOT_APPROVER"

    def __init__(self, target_id: str, role: str | None):
        self.target_id = target_id
        self.role = role
        super().__init__(
            f"Transfer target {target_id} (role {role}) cannot approve purchases"
        )


class InvalidPaymentAmountError(WorkflowValidationError):
    """Payment amount is missing, zero, or negative."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Payment amount must be positive, got {amount}")


class PaymentExceedsRemainingError(WorkflowValidationError):
    """Payment amount is larger than the outstanding balance."""

    code: str = "PAYMENT_EXCEEDS_REMAINING"

    def __init__(self, amount: str, remaining: str):
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f"Payment amount {amount} exceeds remaining balance {remaining}"
        )


class InvoiceRequiredError(WorkflowValidationError):
    """Reimbursement submitted without invoice evidence."""

    code: str = "INVOICE_REQUIRED"

    def __init__(self):
        super().__init__("Reimbursement requires at least one invoice reference")


class UnknownActionError(WorkflowValidationError):
    """Action name is not recognized."""

    code: str = "UNKNOWN_ACTION"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Unknown action: {action}")


class InvalidPurchaseFieldError(WorkflowValidationError):
    """
    Purchase field failed creation-time validation.

    ``code`` is specialised per field (INVALID_QUANTITY, INVALID_UNIT_PRICE,
    INVALID_FEE_AMOUNT, INVALID_ORGANIZATION_TYPE, MISSING_ITEM_NAME).
    """

    code: str = "INVALID_PURCHASE_FIELD"

    _FIELD_CODES = {
        "quantity": "INVALID_QUANTITY",
        "unit_price": "INVALID_UNIT_PRICE",
        "fee_amount": "INVALID_FEE_AMOUNT",
        "organization_type": "INVALID_ORGANIZATION_TYPE",
        "item_name": "MISSING_ITEM_NAME",
    }

    def __init__(self, field_name: str, value: str, reason: str):
        self.field_name = field_name
        self.value = value
        self.reason = reason
        self.code = self._FIELD_CODES.get(field_name, type(self).code)
        super().__init__(f"Invalid {field_name} '{value}': {reason}")


# Routing


class NoApplicableApproverError(PurchaseWorkflowError):
    """No workflow node applies, or a role node has no active holder."""

    code: str = "NO_APPLICABLE_APPROVER"
    kind: ErrorKind = ErrorKind.NO_APPLICABLE_APPROVER

    def __init__(
        self,
        purchase_id: str,
        node_id: str | None = None,
        role: str | None = None,
    ):
        self.purchase_id = purchase_id
        self.node_id = node_id
        self.role = role
        if node_id is None:
            detail = "no workflow node applies"
        else:
            detail = f"node {node_id} has no active holder of role {role}"
        super().__init__(f"No applicable approver for purchase {purchase_id}: {detail}")


# Configuration


class ConfigurationError(PurchaseWorkflowError):
    """Base exception for workflow configuration problems."""

    code: str = "CONFIGURATION_ERROR"
    kind: ErrorKind = ErrorKind.CONFIGURATION


class WorkflowConfigInvalidError(ConfigurationError):
    """Workflow configuration failed validation."""

    code: str = "WORKFLOW_CONFIG_INVALID"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            f"Workflow configuration invalid: {len(self.errors)} error(s): "
            + "; ".join(self.errors)
        )


# Collaborators


class DownstreamFailureError(PurchaseWorkflowError):
    """An external collaborator (notification, directory) failed."""

    code: str = "DOWNSTREAM_FAILURE"
    kind: ErrorKind = ErrorKind.DOWNSTREAM_FAILURE

    def __init__(self, collaborator: str, reason: str):
        self.collaborator = collaborator
        self.reason = reason
        super().__init__(f"{collaborator} failed: {reason}")


# Immutability


class ImmutabilityViolationError(PurchaseWorkflowError):
    """
    Attempted to modify or delete an immutable record.

    Audit log entries are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"
    kind: ErrorKind = ErrorKind.FORBIDDEN

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
