"""
DelegationManager -- lifecycle of approver delegations.

Responsibility:
    Creates, lists and deactivates time-boxed delegations of approval
    authority.  Validation happens before any write.

Invariants enforced:
    - No self-delegation.
    - ``start_date <= end_date``, timezone-aware, no longer than the
      configured maximum window.
    - At most one overlapping active delegation per (tenant, delegator).
      Checked here with ``s1 <= e2 and s2 <= e1`` while holding a
      per-delegator lock until commit, so two concurrent creates cannot
      both pass the check.
    - Only the delegator or a tenant admin may create or deactivate.
    - Deactivation is a soft, irreversible update; rows are never deleted.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, text, update

from approval_config.schema import EngineSettings
from approval_engines.delegation_windows import find_overlapping, validate_window
from approval_kernel.domain.approval import ApproverDelegation
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.exceptions import (
    DelegationNotActiveError,
    DelegationNotFoundError,
    InvalidDateRangeError,
    NotAuthorizedError,
    OverlappingDelegationError,
    SelfDelegationNotAllowedError,
)
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.models.delegation import ApproverDelegationModel
from approval_kernel.services.base import BaseService
from approval_kernel.services.delegation_resolver import DelegationResolver

logger = get_logger("services.delegation_manager")


class DelegationManager(BaseService[ApproverDelegationModel]):
    """Create / list / deactivate delegations."""

    def __init__(
        self,
        session,
        delegation_resolver: DelegationResolver,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ):
        super().__init__(session)
        self._resolver = delegation_resolver
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()

    def create(
        self,
        tenant_id: str,
        delegator_id: str,
        delegatee_id: str,
        start_date: datetime,
        end_date: datetime,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> ApproverDelegation:
        """
        Grant ``delegatee_id`` the delegator's approval authority for the
        closed window ``[start_date, end_date]``.

        Raises:
            NotAuthorizedError: actor is neither the delegator nor an admin.
            SelfDelegationNotAllowedError: delegator == delegatee.
            InvalidDateRangeError: naive, inverted or over-long window.
            OverlappingDelegationError: delegator already has an active
                delegation overlapping the window.
        """
        actor_id = actor_id or delegator_id
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            self._require_owner_or_admin(tenant_id, actor_id, delegator_id, "create_delegation")

            if delegator_id == delegatee_id:
                raise SelfDelegationNotAllowedError(delegator_id)

            problem = validate_window(
                start_date, end_date, self._settings.max_delegation_days,
            )
            if problem:
                raise InvalidDateRangeError(str(start_date), str(end_date), problem)

            self._lock_delegator(tenant_id, delegator_id)
            existing = self.list(tenant_id, delegator_id=delegator_id, active_only=True)
            clash = find_overlapping(existing, start_date, end_date)
            if clash is not None:
                raise OverlappingDelegationError(
                    delegator_id,
                    str(clash.delegation_id),
                    clash.start_date.isoformat(),
                    clash.end_date.isoformat(),
                )

            delegation = ApproverDelegationModel(
                tenant_id=tenant_id,
                delegator_id=delegator_id,
                delegatee_id=delegatee_id,
                start_date=start_date,
                end_date=end_date,
                is_active=True,
                reason=reason,
                created_at=self._clock.now(),
                created_by=actor_id,
            )
            self.session.add(delegation)
            self.session.flush()

            logger.info(
                "delegation_created",
                extra={
                    "delegation_id": str(delegation.id),
                    "delegator_id": delegator_id,
                    "delegatee_id": delegatee_id,
                    "start_date": start_date,
                    "end_date": end_date,
                },
            )
            return delegation.to_dto()

    def list(
        self,
        tenant_id: str,
        delegator_id: str | None = None,
        delegatee_id: str | None = None,
        active_only: bool = False,
    ) -> list[ApproverDelegation]:
        stmt = select(ApproverDelegationModel).where(
            ApproverDelegationModel.tenant_id == tenant_id,
        )
        if delegator_id is not None:
            stmt = stmt.where(ApproverDelegationModel.delegator_id == delegator_id)
        if delegatee_id is not None:
            stmt = stmt.where(ApproverDelegationModel.delegatee_id == delegatee_id)
        if active_only:
            stmt = stmt.where(ApproverDelegationModel.is_active.is_(True))
        stmt = stmt.order_by(
            ApproverDelegationModel.start_date,
            ApproverDelegationModel.created_at,
        ).execution_options(populate_existing=True)
        return [row.to_dto() for row in self.session.scalars(stmt).all()]

    def deactivate(
        self, tenant_id: str, delegation_id: UUID, actor_id: str,
    ) -> ApproverDelegation:
        """
        Raises:
            DelegationNotFoundError: unknown id or another tenant's delegation.
            NotAuthorizedError: actor is neither the delegator nor an admin.
            DelegationNotActiveError: already deactivated.
        """
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            delegation = self._load(tenant_id, delegation_id)
            self._require_owner_or_admin(
                tenant_id, actor_id, delegation.delegator_id, "deactivate_delegation",
            )
            if not delegation.is_active:
                raise DelegationNotActiveError(str(delegation_id))

            result = self.session.execute(
                update(ApproverDelegationModel)
                .where(
                    ApproverDelegationModel.id == delegation_id,
                    ApproverDelegationModel.tenant_id == tenant_id,
                    ApproverDelegationModel.is_active.is_(True),
                )
                .values(
                    is_active=False,
                    deactivated_at=self._clock.now(),
                    deactivated_by=actor_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise DelegationNotActiveError(str(delegation_id))

            logger.info(
                "delegation_deactivated",
                extra={
                    "delegation_id": str(delegation_id),
                    "delegator_id": delegation.delegator_id,
                },
            )
            return self._load(tenant_id, delegation_id)

    def _load(self, tenant_id: str, delegation_id: UUID) -> ApproverDelegation:
        row = self.session.scalar(
            select(ApproverDelegationModel)
            .where(
                ApproverDelegationModel.id == delegation_id,
                ApproverDelegationModel.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
        if row is None:
            raise DelegationNotFoundError(str(delegation_id))
        return row.to_dto()

    def _lock_delegator(self, tenant_id: str, delegator_id: str) -> None:
        """Serialize delegation creates for one delegator until commit.

        PostgreSQL takes a transaction-scoped advisory lock; a row lock
        would not help when the delegator has no rows yet.  SQLite
        transactions open with BEGIN IMMEDIATE (db/engine.py) and already
        hold the database write lock.
        """
        if self.session.get_bind().dialect.name != "postgresql":
            return
        self.session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
            {"lock_key": f"approver_delegation:{tenant_id}:{delegator_id}"},
        )

    def _require_owner_or_admin(
        self, tenant_id: str, actor_id: str, delegator_id: str, action: str,
    ) -> None:
        if actor_id == delegator_id or self._resolver.is_tenant_admin(tenant_id, actor_id):
            return
        logger.warning(
            "approval_denied",
            extra={"action": action, "delegator_id": delegator_id},
        )
        raise NotAuthorizedError(
            actor_id, action, "only the delegator or a tenant admin may do this",
        )
