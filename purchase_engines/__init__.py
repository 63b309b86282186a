"""
Module: purchase_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines:
    node resolution, the request state machine, and timeline composition.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import purchase_kernel/domain/ and purchase_kernel.exceptions.
    MUST NOT import purchase_services or purchase_config.

Invariants enforced:
    - Purity: engines never read the clock; callers pass ``now``.
    - Decimal-only arithmetic for every amount.
    - Determinism: identical inputs always produce identical outputs.
"""

from purchase_engines.node_resolution import (
    ApproverTarget,
    approver_target,
    current_node,
    fallback_node,
    first_applicable_node,
    next_applicable_node,
    node_matches,
    resolve_applicable_nodes,
)
from purchase_engines.timeline import (
    ChainVerification,
    build_timeline,
    timeline_step,
    verify_status_chain,
)
from purchase_engines.transitions import (
    BlockedReason,
    TransitionPlan,
    TransitionPolicy,
    allowed_actions,
    blocked_reason,
    check_transfer_target,
    ensure_action_allowed,
    is_action_allowed,
    plan_transition,
    require_reason,
    resolve_payment_amount,
)

__all__ = [
    "ApproverTarget",
    "BlockedReason",
    "ChainVerification",
    "TransitionPlan",
    "TransitionPolicy",
    "allowed_actions",
    "approver_target",
    "blocked_reason",
    "build_timeline",
    "check_transfer_target",
    "current_node",
    "ensure_action_allowed",
    "fallback_node",
    "first_applicable_node",
    "is_action_allowed",
    "next_applicable_node",
    "node_matches",
    "plan_transition",
    "require_reason",
    "resolve_applicable_nodes",
    "resolve_payment_amount",
    "timeline_step",
    "verify_status_chain",
]
