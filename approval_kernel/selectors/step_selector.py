"""
Module: approval_kernel.selectors.step_selector
Responsibility: Read-side queries over approval chains: the full chain of
    an entity, its current step, its summary, and the steps an actor can
    act on right now.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Tenant-scoped: no query ever returns another tenant's steps.
    - Earliest-open only: a pending step is "current" only while no
      earlier step of the same entity is still PENDING.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import aliased

from approval_engines.chain_progress import current_step, summarize_chain
from approval_kernel.domain.approval import ApprovalStep, ChainSummary, StepStatus
from approval_kernel.models.approval_step import ApprovalStepModel
from approval_kernel.selectors.base import BaseSelector


class StepSelector(BaseSelector[ApprovalStepModel]):
    """Read access to approval steps."""

    def get_chain(
        self, tenant_id: str, entity_type: str, entity_id: str,
    ) -> list[ApprovalStep]:
        """All steps of an entity, ordered by level. Empty if none."""
        rows = self.session.scalars(
            select(ApprovalStepModel)
            .where(
                ApprovalStepModel.tenant_id == tenant_id,
                ApprovalStepModel.entity_type == entity_type,
                ApprovalStepModel.entity_id == entity_id,
            )
            .order_by(ApprovalStepModel.level_order)
            .execution_options(populate_existing=True)
        ).all()
        return [row.to_dto() for row in rows]

    def has_chain(self, tenant_id: str, entity_type: str, entity_id: str) -> bool:
        found = self.session.scalar(
            select(ApprovalStepModel.id)
            .where(
                ApprovalStepModel.tenant_id == tenant_id,
                ApprovalStepModel.entity_type == entity_type,
                ApprovalStepModel.entity_id == entity_id,
            )
            .limit(1)
        )
        return found is not None

    def get_current_step(
        self, tenant_id: str, entity_type: str, entity_id: str,
    ) -> ApprovalStep | None:
        return current_step(self.get_chain(tenant_id, entity_type, entity_id))

    def get_chain_summary(
        self, tenant_id: str, entity_type: str, entity_id: str,
    ) -> ChainSummary:
        return summarize_chain(self.get_chain(tenant_id, entity_type, entity_id))

    def get_pending_for_roles(
        self, tenant_id: str, roles: Iterable[str],
    ) -> list[ApprovalStep]:
        """Current steps whose required role is in ``roles``.

        Ordered by creation time, then entity, so the oldest work surfaces
        first.
        """
        roles = sorted(set(roles))
        if not roles:
            return []

        earlier = aliased(ApprovalStepModel)
        blocking = (
            select(earlier.id)
            .where(
                earlier.tenant_id == ApprovalStepModel.tenant_id,
                earlier.entity_type == ApprovalStepModel.entity_type,
                earlier.entity_id == ApprovalStepModel.entity_id,
                earlier.status == StepStatus.PENDING.value,
                earlier.level_order < ApprovalStepModel.level_order,
            )
            .exists()
        )

        rows = self.session.scalars(
            select(ApprovalStepModel)
            .where(
                ApprovalStepModel.tenant_id == tenant_id,
                ApprovalStepModel.status == StepStatus.PENDING.value,
                ApprovalStepModel.required_role.in_(roles),
                ~blocking,
            )
            .order_by(
                ApprovalStepModel.created_at,
                ApprovalStepModel.entity_type,
                ApprovalStepModel.entity_id,
            )
        ).all()
        return [row.to_dto() for row in rows]
