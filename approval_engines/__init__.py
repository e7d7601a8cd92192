"""
Module: approval_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines used by
    the approval kernel services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import approval_kernel/domain/ (and sibling engine modules).
    MUST NOT import approval_kernel services, selectors or models.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  The current instant is
      passed in by the services, which take it from their ``Clock``.
    - Determinism: identical inputs always produce identical outputs.
"""

from approval_engines.chain_progress import (
    current_step,
    next_pending_after,
    summarize_chain,
)
from approval_engines.delegation_windows import (
    find_overlapping,
    is_effective,
    validate_window,
    window_contains,
    windows_overlap,
)
from approval_engines.policy_matching import (
    policy_matches,
    precedence_key,
    select_policy,
    validate_bounds,
    within_bounds,
)

__all__ = [
    "current_step",
    "next_pending_after",
    "summarize_chain",
    "find_overlapping",
    "is_effective",
    "validate_window",
    "window_contains",
    "windows_overlap",
    "policy_matches",
    "precedence_key",
    "select_policy",
    "validate_bounds",
    "within_bounds",
]
