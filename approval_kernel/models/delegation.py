"""
Module: approval_kernel.models.delegation
Responsibility: ORM persistence for time-boxed approver delegations.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - start_date <= end_date and delegator != delegatee (CHECK).
    - Deactivation is a soft update recording who and when; rows are never
      deleted (db/immutability.py).
    - At most one overlapping active delegation per (tenant, delegator) is
      enforced by DelegationManager, not by the database.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import Base
from approval_kernel.db.types import ActorId, LongText, TenantId

if TYPE_CHECKING:
    from approval_kernel.domain.approval import ApproverDelegation


class ApproverDelegationModel(Base):
    """Persistent delegation of one user's approval authority to another."""

    __tablename__ = "approver_delegations"

    __table_args__ = (
        CheckConstraint(
            "start_date <= end_date",
            name="ck_approver_delegations_window",
        ),
        CheckConstraint(
            "delegator_id <> delegatee_id",
            name="ck_approver_delegations_not_self",
        ),
        Index(
            "ix_approver_delegations_delegator",
            "tenant_id", "delegator_id", "is_active",
        ),
        Index(
            "ix_approver_delegations_delegatee",
            "tenant_id", "delegatee_id", "is_active",
        ),
    )

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)
    delegator_id: Mapped[ActorId] = mapped_column(nullable=False)
    delegatee_id: Mapped[ActorId] = mapped_column(nullable=False)
    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reason: Mapped[LongText | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    created_by: Mapped[ActorId | None] = mapped_column(nullable=True)
    deactivated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deactivated_by: Mapped[ActorId | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ApproverDelegation {self.delegator_id}->{self.delegatee_id} "
            f"{self.start_date:%Y-%m-%d}..{self.end_date:%Y-%m-%d} "
            f"active={self.is_active}>"
        )

    def to_dto(self) -> ApproverDelegation:
        from approval_kernel.domain.approval import (
            ApproverDelegation as ApproverDelegationDTO,
        )

        return ApproverDelegationDTO(
            delegation_id=self.id,
            tenant_id=self.tenant_id,
            delegator_id=self.delegator_id,
            delegatee_id=self.delegatee_id,
            start_date=self.start_date,
            end_date=self.end_date,
            is_active=self.is_active,
            reason=self.reason,
            created_at=self.created_at,
            created_by=self.created_by,
            deactivated_at=self.deactivated_at,
            deactivated_by=self.deactivated_by,
        )
