"""
PolicyStore -- tenant-scoped persistence of approval policies.

Responsibility:
    Creates, deactivates and reads the policy templates that chains are
    materialized from.  Tenant administrators edit policies through this
    store; the workflow itself only reads them.

Invariants enforced:
    - Levels are 1-based, unique within a policy, and name a role.
    - Threshold bounds are ordered when both are given.
    - Cross-tenant reads fail as not found.

Failure modes:
    - InvalidPolicyError on malformed levels or bounds, including
      non-numeric or non-finite thresholds.
    - PolicyRecordNotFoundError for unknown ids or ids owned by another
      tenant.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select

from approval_engines.policy_matching import to_amount, validate_bounds
from approval_kernel.domain.approval import (
    ApprovalLevel,
    ApprovalModule,
    ApprovalPolicy,
    coerce_module,
)
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.exceptions import InvalidPolicyError, PolicyRecordNotFoundError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.policy import ApprovalLevelModel, ApprovalPolicyModel
from approval_kernel.services.base import BaseService

logger = get_logger("services.policy_store")


def _threshold(name: str, field: str, value) -> Decimal | None:
    try:
        return to_amount(value)
    except ValueError as exc:
        raise InvalidPolicyError(name, f"{field} {value!r}: {exc}") from exc


def _normalize_levels(
    name: str, levels: Sequence[ApprovalLevel | tuple[int, str]],
) -> tuple[ApprovalLevel, ...]:
    normalized = []
    for level in levels:
        if isinstance(level, tuple):
            level = ApprovalLevel(level_order=level[0], approver_role=level[1])
        else:
            level = ApprovalLevel(
                level_order=level.level_order, approver_role=level.approver_role,
            )
        if level.level_order < 1:
            raise InvalidPolicyError(name, f"level_order must be >= 1, got {level.level_order}")
        if not level.approver_role:
            raise InvalidPolicyError(name, f"level {level.level_order} has no approver role")
        normalized.append(level)

    orders = [lvl.level_order for lvl in normalized]
    if len(orders) != len(set(orders)):
        raise InvalidPolicyError(name, f"duplicate level_order in {sorted(orders)}")
    return tuple(sorted(normalized, key=lambda lvl: lvl.level_order))


class PolicyStore(BaseService[ApprovalPolicyModel]):
    """Tenant-scoped policy persistence."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create_policy(
        self,
        tenant_id: str,
        name: str,
        module: ApprovalModule | str,
        levels: Sequence[ApprovalLevel | tuple[int, str]],
        priority: int = 1,
        min_amount: Decimal | str | int | None = None,
        max_amount: Decimal | str | int | None = None,
        min_days: int | None = None,
        max_days: int | None = None,
        is_active: bool = True,
    ) -> ApprovalPolicy:
        """Create a policy with its ordered levels.

        An empty ``levels`` sequence is accepted; submitting against such a
        policy raises ``PolicyHasNoLevelsError`` so the caller can decide
        to auto-approve.
        """
        normalized = _normalize_levels(name, levels)
        min_amount = _threshold(name, "min_amount", min_amount)
        max_amount = _threshold(name, "max_amount", max_amount)

        for lower, upper in ((min_amount, max_amount), (min_days, max_days)):
            problem = validate_bounds(lower, upper)
            if problem:
                raise InvalidPolicyError(name, problem)

        policy = ApprovalPolicyModel(
            tenant_id=tenant_id,
            name=name,
            module=coerce_module(module),
            priority=priority,
            is_active=is_active,
            min_amount=min_amount,
            max_amount=max_amount,
            min_days=min_days,
            max_days=max_days,
            created_at=self._clock.now(),
            levels=[
                ApprovalLevelModel(
                    level_order=lvl.level_order,
                    approver_role=lvl.approver_role,
                )
                for lvl in normalized
            ],
        )
        self.session.add(policy)
        self.session.flush()

        logger.info(
            "approval_policy_created",
            extra={
                "tenant_id": tenant_id,
                "policy_id": str(policy.id),
                "policy_name": name,
                "approval_module": policy.module,
                "priority": priority,
                "level_count": len(normalized),
            },
        )
        return policy.to_dto()

    def import_policy_defs(self, tenant_id: str, defs: Iterable) -> tuple[ApprovalPolicy, ...]:
        """Seed policies from parsed YAML fragments (``approval_config.PolicyDef``)."""
        return tuple(
            self.create_policy(
                tenant_id=tenant_id,
                name=d.name,
                module=d.module,
                levels=d.levels,
                priority=d.priority,
                min_amount=d.min_amount,
                max_amount=d.max_amount,
                min_days=d.min_days,
                max_days=d.max_days,
                is_active=d.is_active,
            )
            for d in defs
        )

    def deactivate_policy(self, tenant_id: str, policy_id: UUID) -> ApprovalPolicy:
        policy = self._load(tenant_id, policy_id)
        if policy.is_active:
            policy.is_active = False
            self.session.flush()
            logger.info(
                "approval_policy_deactivated",
                extra={"tenant_id": tenant_id, "policy_id": str(policy_id)},
            )
        return policy.to_dto()

    def get_policy(self, tenant_id: str, policy_id: UUID) -> ApprovalPolicy:
        return self._load(tenant_id, policy_id).to_dto()

    def list_policies(
        self,
        tenant_id: str,
        module: ApprovalModule | str | None = None,
        active_only: bool = False,
    ) -> list[ApprovalPolicy]:
        stmt = select(ApprovalPolicyModel).where(
            ApprovalPolicyModel.tenant_id == tenant_id,
        )
        if module is not None:
            stmt = stmt.where(ApprovalPolicyModel.module == coerce_module(module))
        if active_only:
            stmt = stmt.where(ApprovalPolicyModel.is_active.is_(True))
        stmt = stmt.order_by(
            ApprovalPolicyModel.module,
            ApprovalPolicyModel.priority,
            ApprovalPolicyModel.created_at,
        )
        return [p.to_dto() for p in self.session.scalars(stmt).all()]

    def load_candidates(
        self, tenant_id: str, module: ApprovalModule | str,
    ) -> list[ApprovalPolicy]:
        """Active policies for one module, the resolver's input."""
        return self.list_policies(tenant_id, module=module, active_only=True)

    def _load(self, tenant_id: str, policy_id: UUID) -> ApprovalPolicyModel:
        policy = self.session.scalar(
            select(ApprovalPolicyModel).where(
                ApprovalPolicyModel.id == policy_id,
                ApprovalPolicyModel.tenant_id == tenant_id,
            )
        )
        if policy is None:
            raise PolicyRecordNotFoundError(str(policy_id))
        return policy
