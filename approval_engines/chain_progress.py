"""
approval_engines.chain_progress -- Pure views over a materialized chain.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
"""

from __future__ import annotations

from typing import Sequence

from approval_kernel.domain.approval import (
    ApprovalStep,
    ChainStatus,
    ChainSummary,
    StepStatus,
)


def current_step(steps: Sequence[ApprovalStep]) -> ApprovalStep | None:
    """The earliest PENDING step, or ``None`` when the chain is closed."""
    pending = [s for s in steps if s.status == StepStatus.PENDING]
    if not pending:
        return None
    return min(pending, key=lambda s: s.level_order)


def next_pending_after(
    steps: Sequence[ApprovalStep], level_order: int,
) -> ApprovalStep | None:
    """Lowest PENDING step with a level above ``level_order``."""
    later = [
        s for s in steps
        if s.status == StepStatus.PENDING and s.level_order > level_order
    ]
    if not later:
        return None
    return min(later, key=lambda s: s.level_order)


def summarize_chain(steps: Sequence[ApprovalStep]) -> ChainSummary:
    """Summarize a chain for display.

    Rules, in order:
        - no steps: NOT_STARTED
        - any REJECTED step: REJECTED at that level; every decided step
          (approved, rejected, skipped) counts as completed
        - no PENDING step: APPROVED
        - otherwise PENDING at the earliest open level; only APPROVED
          steps count as completed
    """
    if not steps:
        return ChainSummary(
            total_steps=0,
            completed_steps=0,
            current_level=None,
            status=ChainStatus.NOT_STARTED,
        )

    ordered = sorted(steps, key=lambda s: s.level_order)
    decided = sum(1 for s in ordered if s.status != StepStatus.PENDING)

    rejected = next((s for s in ordered if s.status == StepStatus.REJECTED), None)
    if rejected is not None:
        return ChainSummary(
            total_steps=len(ordered),
            completed_steps=decided,
            current_level=rejected.level_order,
            status=ChainStatus.REJECTED,
        )

    pending = current_step(ordered)
    if pending is None:
        return ChainSummary(
            total_steps=len(ordered),
            completed_steps=decided,
            current_level=None,
            status=ChainStatus.APPROVED,
        )

    return ChainSummary(
        total_steps=len(ordered),
        completed_steps=sum(1 for s in ordered if s.status == StepStatus.APPROVED),
        current_level=pending.level_order,
        status=ChainStatus.PENDING,
    )
