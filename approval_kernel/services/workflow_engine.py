"""
WorkflowEngine -- advances approval chains.

Responsibility:
    Applies approve, reject and admin-bypass actions to materialized steps,
    enforcing ordering and authorization, and reports chain completion or
    rejection to the ``WorkflowListener``.

Architecture position:
    Kernel > Services -- imperative shell.  Pure chain arithmetic lives in
    ``approval_engines.chain_progress``; authorization is delegated to the
    ``DelegationResolver``.

Invariants enforced:
    - Exactly-once transitions: every status change is a single
      conditional UPDATE guarded by ``status = 'PENDING'``.  Of N
      concurrent actions on one step exactly one updates a row; the rest
      see zero rows and raise ``StepNotPendingError``.
    - Ordering: the same UPDATE refuses to act while an earlier level of the
      entity is still PENDING (``StepOutOfOrderError``).
    - Rejection closes the chain: remaining PENDING steps become SKIPPED in
      the same transaction.
    - Tenant isolation: a step of another tenant is reported as not found.
    - Authorization is checked before the step state, so an actor who may
      not decide the step learns nothing about its outcome.

Failure modes:
    - StepNotFoundError, StepNotPendingError, StepOutOfOrderError,
      NotAuthorizedError, ValidationError (empty rejection reason).
    - Listener exceptions propagate; the caller's transaction rolls back.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import aliased

from approval_engines.chain_progress import next_pending_after
from approval_kernel.domain.approval import (
    ApprovalStep,
    AuthorizationResult,
    NullWorkflowListener,
    StepActionResult,
    StepStatus,
    WorkflowListener,
    WorkflowOutcome,
)
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.exceptions import (
    NotAuthorizedError,
    StepNotFoundError,
    StepNotPendingError,
    StepOutOfOrderError,
    ValidationError,
)
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.models.approval_step import ApprovalStepModel
from approval_kernel.selectors.step_selector import StepSelector
from approval_kernel.services.base import BaseService
from approval_kernel.services.delegation_resolver import DelegationResolver

logger = get_logger("services.workflow_engine")

BYPASS_NOTES = "Approved by admin (bypass)"

_PENDING = StepStatus.PENDING.value


class WorkflowEngine(BaseService[ApprovalStepModel]):
    """Step transitions for approval chains."""

    def __init__(
        self,
        session,
        delegation_resolver: DelegationResolver,
        listener: WorkflowListener | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._resolver = delegation_resolver
        self._listener = listener or NullWorkflowListener()
        self._clock = clock or SystemClock()
        self._steps = StepSelector(session)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def approve(
        self,
        tenant_id: str,
        step_id: UUID,
        actor_id: str,
        notes: str | None = None,
    ) -> StepActionResult:
        """Approve a step as ``actor_id`` (directly or via delegation)."""
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            step = self._load_step(tenant_id, step_id)
            auth = self._authorize(step, actor_id, "approve")
            self._require_pending(step)

            now = self._clock.now()
            self._transition(
                step,
                status=StepStatus.APPROVED.value,
                approver_id=auth.acting_as_user_id,
                action_at=now,
                notes=notes,
            )

            chain = self._steps.get_chain(tenant_id, step.entity_type, step.entity_id)
            decided = self._find(chain, step.step_id)
            next_step = next_pending_after(chain, step.level_order)

            logger.info(
                "approval_step_approved",
                extra={
                    "step_id": str(step.step_id),
                    "entity_type": step.entity_type,
                    "entity_id": step.entity_id,
                    "level_order": step.level_order,
                    "approver_id": auth.acting_as_user_id,
                    "via_delegation": auth.via_delegation,
                    "delegation_id": str(auth.delegation_id) if auth.delegation_id else None,
                },
            )

            if next_step is None:
                logger.info(
                    "approval_chain_completed",
                    extra={"entity_type": step.entity_type, "entity_id": step.entity_id},
                )
                self._listener.on_workflow_complete(step.entity_type, step.entity_id)
                outcome = WorkflowOutcome.COMPLETE
            else:
                outcome = WorkflowOutcome.IN_PROGRESS

            return StepActionResult(
                step=decided,
                outcome=outcome,
                next_step=next_step,
                acting_as_user_id=auth.acting_as_user_id,
                via_delegation=auth.via_delegation,
            )

    def reject(
        self,
        tenant_id: str,
        step_id: UUID,
        actor_id: str,
        reason: str,
    ) -> StepActionResult:
        """Reject a step and close the chain.

        Every other PENDING step of the entity becomes SKIPPED in the same
        transaction.
        """
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")

        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            step = self._load_step(tenant_id, step_id)
            auth = self._authorize(step, actor_id, "reject")
            self._require_pending(step)

            now = self._clock.now()
            self._transition(
                step,
                status=StepStatus.REJECTED.value,
                approver_id=auth.acting_as_user_id,
                action_at=now,
                rejection_reason=reason,
            )

            skipped = self.session.execute(
                update(ApprovalStepModel)
                .where(
                    ApprovalStepModel.tenant_id == tenant_id,
                    ApprovalStepModel.entity_type == step.entity_type,
                    ApprovalStepModel.entity_id == step.entity_id,
                    ApprovalStepModel.status == _PENDING,
                    ApprovalStepModel.id != step.step_id,
                )
                .values(status=StepStatus.SKIPPED.value)
                .execution_options(synchronize_session=False)
            ).rowcount

            chain = self._steps.get_chain(tenant_id, step.entity_type, step.entity_id)
            decided = self._find(chain, step.step_id)

            logger.info(
                "approval_step_rejected",
                extra={
                    "step_id": str(step.step_id),
                    "entity_type": step.entity_type,
                    "entity_id": step.entity_id,
                    "level_order": step.level_order,
                    "approver_id": auth.acting_as_user_id,
                    "via_delegation": auth.via_delegation,
                    "skipped_count": skipped,
                },
            )

            self._listener.on_workflow_rejected(step.entity_type, step.entity_id, reason)

            return StepActionResult(
                step=decided,
                outcome=WorkflowOutcome.REJECTED,
                next_step=None,
                acting_as_user_id=auth.acting_as_user_id,
                via_delegation=auth.via_delegation,
            )

    def admin_bypass(
        self,
        tenant_id: str,
        entity_type: str,
        entity_id: str,
        actor_id: str,
        notes: str | None = None,
    ) -> StepActionResult:
        """Approve every remaining PENDING step of an entity as a tenant admin."""
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, entity_id=entity_id):
            if not self._resolver.is_tenant_admin(tenant_id, actor_id):
                self._deny(actor_id, "admin_bypass", "actor is not a tenant admin")

            chain = self._steps.get_chain(tenant_id, entity_type, entity_id)
            if not chain:
                raise StepNotFoundError(f"{entity_type}/{entity_id}")

            now = self._clock.now()
            approved = self.session.execute(
                update(ApprovalStepModel)
                .where(
                    ApprovalStepModel.tenant_id == tenant_id,
                    ApprovalStepModel.entity_type == entity_type,
                    ApprovalStepModel.entity_id == entity_id,
                    ApprovalStepModel.status == _PENDING,
                )
                .values(
                    status=StepStatus.APPROVED.value,
                    approver_id=actor_id,
                    action_at=now,
                    notes=notes or BYPASS_NOTES,
                )
                .execution_options(synchronize_session=False)
            ).rowcount

            if approved == 0:
                closed = next(
                    (s for s in chain if s.status == StepStatus.REJECTED), chain[-1],
                )
                raise StepNotPendingError(str(closed.step_id), closed.status.value)

            chain = self._steps.get_chain(tenant_id, entity_type, entity_id)

            logger.info(
                "approval_chain_bypassed",
                extra={
                    "entity_type": entity_type,
                    "approved_count": approved,
                },
            )
            logger.info(
                "approval_chain_completed",
                extra={"entity_type": entity_type, "entity_id": entity_id},
            )
            self._listener.on_workflow_complete(entity_type, entity_id)

            return StepActionResult(
                step=chain[-1],
                outcome=WorkflowOutcome.COMPLETE,
                next_step=None,
                acting_as_user_id=actor_id,
                via_delegation=False,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_step(self, tenant_id: str, step_id: UUID) -> ApprovalStep:
        row = self.session.scalar(
            select(ApprovalStepModel)
            .where(
                ApprovalStepModel.id == step_id,
                ApprovalStepModel.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
        if row is None:
            raise StepNotFoundError(str(step_id))
        return row.to_dto()

    def _require_pending(self, step: ApprovalStep) -> None:
        if step.status != StepStatus.PENDING:
            raise StepNotPendingError(str(step.step_id), step.status.value)

    def _authorize(
        self, step: ApprovalStep, actor_id: str, action: str,
    ) -> AuthorizationResult:
        auth = self._resolver.authorize(
            step.tenant_id, step.required_role, actor_id, self._clock.now(),
        )
        if not auth.allowed:
            self._deny(actor_id, action, auth.reason, step)
        return auth

    def _deny(
        self,
        actor_id: str,
        action: str,
        reason: str,
        step: ApprovalStep | None = None,
    ) -> None:
        logger.warning(
            "approval_denied",
            extra={
                "action": action,
                "step_id": str(step.step_id) if step else None,
                "required_role": step.required_role if step else None,
                "reason": reason,
            },
        )
        raise NotAuthorizedError(actor_id, action, reason)

    def _transition(self, step: ApprovalStep, **values) -> None:
        """Move ``step`` out of PENDING, or classify why it could not move."""
        earlier = aliased(ApprovalStepModel)
        blocking = (
            select(earlier.id)
            .where(
                earlier.tenant_id == step.tenant_id,
                earlier.entity_type == step.entity_type,
                earlier.entity_id == step.entity_id,
                earlier.status == _PENDING,
                earlier.level_order < step.level_order,
            )
            .exists()
        )

        result = self.session.execute(
            update(ApprovalStepModel)
            .where(
                ApprovalStepModel.id == step.step_id,
                ApprovalStepModel.tenant_id == step.tenant_id,
                ApprovalStepModel.status == _PENDING,
                ~blocking,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        current = self._load_step(step.tenant_id, step.step_id)
        if current.status != StepStatus.PENDING:
            logger.info(
                "approval_step_race_lost",
                extra={"step_id": str(step.step_id), "status": current.status.value},
            )
            raise StepNotPendingError(str(step.step_id), current.status.value)

        chain = self._steps.get_chain(step.tenant_id, step.entity_type, step.entity_id)
        open_earlier = [
            s.level_order for s in chain
            if s.status == StepStatus.PENDING and s.level_order < step.level_order
        ]
        if open_earlier:
            raise StepOutOfOrderError(str(step.step_id), step.level_order, min(open_earlier))
        raise StepNotPendingError(str(step.step_id), current.status.value)

    @staticmethod
    def _find(chain: list[ApprovalStep], step_id: UUID) -> ApprovalStep:
        return next(s for s in chain if s.step_id == step_id)
