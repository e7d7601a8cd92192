"""
approval_engines.delegation_windows -- Delegation window arithmetic.

Responsibility:
    Validate delegation windows and answer "is this grant effective at
    instant T" and "do these two grants overlap".

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The current instant is
    always passed in by the caller.

Invariants enforced:
    - Windows are closed intervals: ``start <= t <= end``.
    - Two windows overlap when ``start1 <= end2 and start2 <= end1``.
    - Windows must be timezone-aware.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from approval_kernel.domain.approval import ApproverDelegation


def windows_overlap(
    start1: datetime, end1: datetime, start2: datetime, end2: datetime,
) -> bool:
    return start1 <= end2 and start2 <= end1


def window_contains(start: datetime, end: datetime, instant: datetime) -> bool:
    return start <= instant <= end


def validate_window(
    start: datetime,
    end: datetime,
    max_days: int | None = None,
) -> str | None:
    """Check a proposed delegation window.

    Returns:
        ``None`` when the window is valid, otherwise the reason it is not.
    """
    if start.tzinfo is None or end.tzinfo is None:
        return "dates must be timezone-aware"
    if start > end:
        return "start date is after end date"
    if max_days is not None and end - start > timedelta(days=max_days):
        return f"window exceeds the maximum of {max_days} days"
    return None


def is_effective(delegation: ApproverDelegation, instant: datetime) -> bool:
    """Active and inside its window at ``instant``."""
    return delegation.is_active and window_contains(
        delegation.start_date, delegation.end_date, instant,
    )


def find_overlapping(
    delegations: Iterable[ApproverDelegation],
    start: datetime,
    end: datetime,
) -> ApproverDelegation | None:
    """First active delegation whose window overlaps ``[start, end]``."""
    for delegation in delegations:
        if delegation.is_active and windows_overlap(
            delegation.start_date, delegation.end_date, start, end,
        ):
            return delegation
    return None
