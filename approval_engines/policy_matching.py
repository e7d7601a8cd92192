"""
approval_engines.policy_matching -- Pure policy selection.

Responsibility:
    Decide which of a tenant's candidate policies governs a submission,
    given the submitted amount and (for leave) day count.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import approval_kernel/domain/ types.

Invariants enforced:
    - Deterministic ordering: lowest ``priority`` number wins; ties go to
      the oldest ``created_at``, then the lowest policy id.
    - Bounds are inclusive; a ``None`` bound is unbounded on that side.
    - An absent measure only matches policies with no bound on it at all.
    - Purity: no clock access, no I/O, no database.

Failure modes:
    - Returns ``None`` when nothing matches; the caller raises.
    - to_amount() raises ValueError for non-numeric or non-finite input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Iterable

from approval_kernel.domain.approval import ApprovalPolicy

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def to_amount(value) -> Decimal | None:
    """Coerce a submitted amount or threshold to a finite ``Decimal``.

    Raises:
        ValueError: ``value`` is not a number, or is NaN or infinite.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("booleans are not amounts")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError("not a decimal number") from None
    if not amount.is_finite():
        raise ValueError("amount must be finite")
    return amount


def within_bounds(value, lower, upper) -> bool:
    """Check ``value`` against an inclusive, optionally open range.

    A ``None`` value matches only when both bounds are ``None``.
    """
    if value is None:
        return lower is None and upper is None
    if lower is not None and value < lower:
        return False
    if upper is not None and value > upper:
        return False
    return True


def policy_matches(
    policy: ApprovalPolicy,
    module: str,
    amount: Decimal | None,
    days: int | None = None,
) -> bool:
    """Whether an active policy applies to the given submission."""
    if not policy.is_active or policy.module != module:
        return False
    if not within_bounds(amount, policy.min_amount, policy.max_amount):
        return False
    return within_bounds(days, policy.min_days, policy.max_days)


def precedence_key(policy: ApprovalPolicy) -> tuple:
    return (
        policy.priority,
        policy.created_at or _OLDEST,
        str(policy.policy_id),
    )


def select_policy(
    policies: Iterable[ApprovalPolicy],
    module: str,
    amount: Decimal | None,
    days: int | None = None,
) -> ApprovalPolicy | None:
    """Select the governing policy, or ``None`` if no candidate matches.

    Args:
        policies: Candidate policies for one tenant (any order).
        module: Module the submission belongs to.
        amount: Monetary amount, or ``None`` when the entity has none.
        days: Duration in days for leave-style submissions.

    Returns:
        The single winning policy.
    """
    matches = [p for p in policies if policy_matches(p, module, amount, days)]
    if not matches:
        return None
    return min(matches, key=precedence_key)


def validate_bounds(lower, upper) -> str | None:
    """Return a reason string if ``lower > upper``; ``None`` when valid."""
    if lower is not None and upper is not None and lower > upper:
        return f"lower bound {lower} exceeds upper bound {upper}"
    return None
