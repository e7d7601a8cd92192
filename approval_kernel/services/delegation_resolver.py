"""
DelegationResolver -- decides who may act on a step.

Responsibility:
    The one place authorization is decided.  Given a required role, an
    actor and the current instant, returns whether the actor may act and on
    whose behalf (themselves, or a delegator).  Also decides tenant-admin
    status for overrides.

Invariants enforced:
    - Direct role membership wins over delegation.
    - Delegation is single-hop: only delegators who hold the role directly
      count; a delegator's own incoming delegations are never followed.
    - Delegations are re-evaluated at every call; nothing is cached.
    - Everything is scoped by tenant.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from approval_config.schema import EngineSettings
from approval_kernel.domain.approval import (
    ApproverDelegation,
    AuthorizationResult,
    RoleDirectory,
)
from approval_kernel.logging_config import get_logger
from approval_kernel.models.delegation import ApproverDelegationModel
from approval_kernel.services.base import BaseService

logger = get_logger("services.delegation_resolver")


class DelegationResolver(BaseService[ApproverDelegationModel]):
    """Role-or-delegation authorization."""

    def __init__(
        self,
        session,
        role_directory: RoleDirectory,
        settings: EngineSettings | None = None,
    ):
        super().__init__(session)
        self._roles = role_directory
        self._settings = settings or EngineSettings()

    def authorize(
        self,
        tenant_id: str,
        required_role: str,
        actor_id: str,
        now: datetime,
    ) -> AuthorizationResult:
        """May ``actor_id`` act for ``required_role`` at ``now``?

        When several effective delegations qualify, the oldest one wins.
        """
        if self._roles.holds_role(tenant_id, actor_id, required_role):
            return AuthorizationResult(
                allowed=True,
                acting_as_user_id=actor_id,
                reason="direct role",
            )

        for delegation in self.effective_delegations_to(tenant_id, actor_id, now):
            if self._roles.holds_role(tenant_id, delegation.delegator_id, required_role):
                return AuthorizationResult(
                    allowed=True,
                    acting_as_user_id=delegation.delegator_id,
                    via_delegation=True,
                    delegation_id=delegation.delegation_id,
                    reason="delegation",
                )

        return AuthorizationResult(
            allowed=False,
            reason=f"actor does not hold {required_role} and has no active delegation for it",
        )

    def effective_delegations_to(
        self, tenant_id: str, delegatee_id: str, now: datetime,
    ) -> list[ApproverDelegation]:
        """Active delegations to ``delegatee_id`` whose window contains ``now``."""
        rows = self.session.scalars(
            select(ApproverDelegationModel)
            .where(
                ApproverDelegationModel.tenant_id == tenant_id,
                ApproverDelegationModel.delegatee_id == delegatee_id,
                ApproverDelegationModel.is_active.is_(True),
                ApproverDelegationModel.start_date <= now,
                ApproverDelegationModel.end_date >= now,
            )
            .order_by(
                ApproverDelegationModel.created_at,
                ApproverDelegationModel.id,
            )
        ).all()
        return [row.to_dto() for row in rows]

    def delegable_roles(
        self, tenant_id: str, actor_id: str, now: datetime,
    ) -> frozenset[str]:
        """Direct roles plus the direct roles of every effective delegator."""
        roles = set(self._roles.roles_for(tenant_id, actor_id))
        for delegation in self.effective_delegations_to(tenant_id, actor_id, now):
            roles |= self._roles.roles_for(tenant_id, delegation.delegator_id)
        return frozenset(roles)

    def is_tenant_admin(self, tenant_id: str, actor_id: str) -> bool:
        return self._roles.holds_role(tenant_id, actor_id, self._settings.admin_role)
