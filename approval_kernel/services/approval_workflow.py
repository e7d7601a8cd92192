"""
ApprovalWorkflowService -- the external interface of the approval engine.

Responsibility:
    Wires policy resolution, chain materialization, step transitions,
    delegation management and read queries over one caller-owned
    ``Session``.  Collaborators (leave, purchase, asset, spend request
    features) call only this class.

Architecture position:
    Kernel > Services -- imperative shell facade.

Invariants enforced:
    - Every call takes an explicit ``tenant_id``; there is no implicit
      current tenant.
    - Flush only; the caller commits (``session_scope()``).
    - All authorization flows through the ``DelegationResolver``.

Usage:
    with session_scope() as session:
        workflow = ApprovalWorkflowService(session, listener=leave_listener)
        result = workflow.submit("acme", ApprovalModule.LEAVE_REQUEST, None,
                                 "LEAVE_REQUEST", "leave-1", days=3)
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from approval_config.schema import EngineSettings
from approval_kernel.domain.approval import (
    ApprovalModule,
    ApprovalStep,
    ApproverDelegation,
    ChainSummary,
    RoleDirectory,
    StepActionResult,
    SubmissionResult,
    WorkflowListener,
)
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.selectors.step_selector import StepSelector
from approval_kernel.services.delegation_manager import DelegationManager
from approval_kernel.services.delegation_resolver import DelegationResolver
from approval_kernel.services.policy_resolver import PolicyResolver
from approval_kernel.services.policy_store import PolicyStore
from approval_kernel.services.role_directory import SqlRoleDirectory
from approval_kernel.services.step_materializer import StepMaterializer
from approval_kernel.services.workflow_engine import WorkflowEngine

logger = get_logger("services.approval_workflow")


class ApprovalWorkflowService:
    """Facade over the approval workflow and delegation engine."""

    def __init__(
        self,
        session: Session,
        role_directory: RoleDirectory | None = None,
        listener: WorkflowListener | None = None,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()
        self._roles = role_directory or SqlRoleDirectory(session)

        self.policies = PolicyStore(session, self._clock)
        self._policy_resolver = PolicyResolver(self.policies)
        self._delegation_resolver = DelegationResolver(session, self._roles, self._settings)
        self._materializer = StepMaterializer(session, self._clock)
        self._engine = WorkflowEngine(
            session, self._delegation_resolver, listener, self._clock,
        )
        self._delegations = DelegationManager(
            session, self._delegation_resolver, self._clock, self._settings,
        )
        self._steps = StepSelector(session)

    # -- submission -----------------------------------------------------

    def submit(
        self,
        tenant_id: str,
        module: ApprovalModule | str,
        amount: Decimal | int | str | None,
        entity_type: str,
        entity_id: str,
        days: int | None = None,
    ) -> SubmissionResult:
        """Resolve the governing policy and materialize the entity's chain.

        Raises:
            InvalidAmountError, PolicyNotFoundError, PolicyHasNoLevelsError,
            WorkflowAlreadyExistsError.
        """
        with LogContext.bind(tenant_id=tenant_id, entity_id=entity_id):
            policy = self._policy_resolver.resolve(tenant_id, module, amount, days)
            steps = self._materializer.materialize(tenant_id, policy, entity_type, entity_id)
            logger.info(
                "workflow_submitted",
                extra={
                    "entity_type": entity_type,
                    "policy_id": str(policy.policy_id),
                    "policy_name": policy.name,
                    "step_count": len(steps),
                },
            )
            return SubmissionResult(policy=policy, steps=steps)

    # -- reads ----------------------------------------------------------

    def get_chain(
        self, tenant_id: str, entity_type: str, entity_id: str,
    ) -> list[ApprovalStep]:
        return self._steps.get_chain(tenant_id, entity_type, entity_id)

    def has_chain(self, tenant_id: str, entity_type: str, entity_id: str) -> bool:
        return self._steps.has_chain(tenant_id, entity_type, entity_id)

    def get_current_step(
        self, tenant_id: str, entity_type: str, entity_id: str,
    ) -> ApprovalStep | None:
        return self._steps.get_current_step(tenant_id, entity_type, entity_id)

    def get_chain_summary(
        self, tenant_id: str, entity_type: str, entity_id: str,
    ) -> ChainSummary:
        return self._steps.get_chain_summary(tenant_id, entity_type, entity_id)

    def get_pending_for_actor(self, tenant_id: str, actor_id: str) -> list[ApprovalStep]:
        """Current steps the actor may act on, directly or via delegation."""
        roles = self._delegation_resolver.delegable_roles(
            tenant_id, actor_id, self._clock.now(),
        )
        return self._steps.get_pending_for_roles(tenant_id, roles)

    # -- actions --------------------------------------------------------

    def approve(
        self,
        tenant_id: str,
        step_id: UUID,
        actor_id: str,
        notes: str | None = None,
    ) -> StepActionResult:
        return self._engine.approve(tenant_id, step_id, actor_id, notes)

    def reject(
        self, tenant_id: str, step_id: UUID, actor_id: str, reason: str,
    ) -> StepActionResult:
        return self._engine.reject(tenant_id, step_id, actor_id, reason)

    def admin_bypass(
        self,
        tenant_id: str,
        entity_type: str,
        entity_id: str,
        actor_id: str,
        notes: str | None = None,
    ) -> StepActionResult:
        return self._engine.admin_bypass(tenant_id, entity_type, entity_id, actor_id, notes)

    # -- delegations ----------------------------------------------------

    def create_delegation(
        self,
        tenant_id: str,
        delegator_id: str,
        delegatee_id: str,
        start_date: datetime,
        end_date: datetime,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> ApproverDelegation:
        return self._delegations.create(
            tenant_id, delegator_id, delegatee_id, start_date, end_date, reason, actor_id,
        )

    def list_delegations(
        self,
        tenant_id: str,
        delegator_id: str | None = None,
        delegatee_id: str | None = None,
        active_only: bool = False,
    ) -> list[ApproverDelegation]:
        return self._delegations.list(tenant_id, delegator_id, delegatee_id, active_only)

    def deactivate_delegation(
        self, tenant_id: str, delegation_id: UUID, actor_id: str,
    ) -> ApproverDelegation:
        return self._delegations.deactivate(tenant_id, delegation_id, actor_id)
