"""
StepMaterializer -- turns a resolved policy into an entity's chain.

Responsibility:
    Creates one PENDING ``ApprovalStep`` per policy level in a single batch,
    copying ``level_order`` and ``approver_role`` so later policy edits never
    reach the in-flight chain.

Invariants enforced:
    - One chain per (tenant, entity_type, entity_id).  The existence check
      covers the common case; a concurrent duplicate that races past it is
      stopped by the unique constraint and reported the same way.
    - All steps of a chain are inserted together or not at all.

Failure modes:
    - PolicyHasNoLevelsError if the policy has zero levels.
    - WorkflowAlreadyExistsError if the entity already has steps.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from approval_kernel.domain.approval import ApprovalPolicy, ApprovalStep, StepStatus
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.exceptions import PolicyHasNoLevelsError, WorkflowAlreadyExistsError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.approval_step import ApprovalStepModel
from approval_kernel.services.base import BaseService

logger = get_logger("services.step_materializer")


class StepMaterializer(BaseService[ApprovalStepModel]):
    """Batch-creates the ordered steps of a chain."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def materialize(
        self,
        tenant_id: str,
        policy: ApprovalPolicy,
        entity_type: str,
        entity_id: str,
    ) -> tuple[ApprovalStep, ...]:
        """Create the chain and return it ordered by ``level_order``."""
        if not policy.levels:
            raise PolicyHasNoLevelsError(str(policy.policy_id), policy.name)

        if self._chain_exists(tenant_id, entity_type, entity_id):
            raise WorkflowAlreadyExistsError(entity_type, entity_id)

        now = self._clock.now()
        steps = [
            ApprovalStepModel(
                tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=entity_id,
                level_order=level.level_order,
                required_role=level.approver_role,
                status=StepStatus.PENDING.value,
                policy_id=policy.policy_id,
                created_at=now,
            )
            for level in sorted(policy.levels, key=lambda lvl: lvl.level_order)
        ]

        try:
            with self.session.begin_nested():
                self.session.add_all(steps)
                self.session.flush()
        except IntegrityError:
            logger.warning(
                "concurrent_chain_insert_conflict",
                extra={
                    "tenant_id": tenant_id,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                },
            )
            raise WorkflowAlreadyExistsError(entity_type, entity_id)

        logger.info(
            "approval_chain_materialized",
            extra={
                "tenant_id": tenant_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "policy_id": str(policy.policy_id),
                "step_count": len(steps),
            },
        )
        return tuple(step.to_dto() for step in steps)

    def _chain_exists(self, tenant_id: str, entity_type: str, entity_id: str) -> bool:
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
