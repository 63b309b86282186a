"""Kernel services: flush-only persistence gateways for requests and audit entries."""

from purchase_kernel.services.audit_recorder import AuditRecorder
from purchase_kernel.services.purchase_store import PurchaseStore, format_purchase_number

__all__ = ["AuditRecorder", "PurchaseStore", "format_purchase_number"]
