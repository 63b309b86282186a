"""
purchase_config -- workflow configuration and deployment settings.

Responsibility:
    Parses and validates the approval workflow document (YAML on disk or
    JSON stored in the ``workflow_config`` table) and loads the engine
    settings with environment overrides.

Architecture position:
    Configuration layer.  Sits above ``purchase_kernel`` and
    ``purchase_engines`` and below ``purchase_services``.  The kernel MUST
    NEVER import from ``purchase_config``.

Invariants enforced:
    - Deterministic checksums: equivalent documents hash identically.
    - Strict validation before save; lenient normalization on read.
"""

from purchase_config.loader import (
    DEFAULT_SETTINGS_FILE,
    DEFAULT_WORKFLOW_FILE,
    compute_checksum,
    dump_workflow_yaml,
    load_workflow_file,
    parse_workflow_document,
    workflow_to_document,
)
from purchase_config.settings import EngineSettings, NotifyPolicy, load_settings
from purchase_config.validator import ConfigValidationResult, validate_workflow_document

__all__ = [
    "DEFAULT_SETTINGS_FILE",
    "DEFAULT_WORKFLOW_FILE",
    "ConfigValidationResult",
    "EngineSettings",
    "NotifyPolicy",
    "compute_checksum",
    "dump_workflow_yaml",
    "load_settings",
    "load_workflow_file",
    "parse_workflow_document",
    "validate_workflow_document",
    "workflow_to_document",
]
