"""
Module: approval_kernel.models.policy
Responsibility: ORM persistence for tenant approval policies and their
    ordered levels (the chain templates).

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - level_order is unique within a policy (UNIQUE(policy_id, level_order)).
    - Threshold bounds are ordered when both are present (CHECK).
    - Policies are owned by a tenant; every lookup filters on tenant_id.

Failure modes:
    - IntegrityError on duplicate level_order within a policy.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_kernel.db.base import Base, UUIDString
from approval_kernel.db.types import RoleName, ShortCode, TenantId

if TYPE_CHECKING:
    from approval_kernel.domain.approval import ApprovalLevel, ApprovalPolicy


class ApprovalPolicyModel(Base):
    """Persistent approval policy.

    ``priority`` is a rank: lower number = higher precedence.
    """

    __tablename__ = "approval_policies"

    __table_args__ = (
        CheckConstraint(
            "min_amount IS NULL OR max_amount IS NULL OR min_amount <= max_amount",
            name="ck_approval_policies_amount_bounds",
        ),
        CheckConstraint(
            "min_days IS NULL OR max_days IS NULL OR min_days <= max_days",
            name="ck_approval_policies_day_bounds",
        ),
        Index(
            "ix_approval_policies_lookup",
            "tenant_id", "module", "is_active", "priority",
        ),
    )

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    module: Mapped[ShortCode] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    priority: Mapped[int] = mapped_column(nullable=False, default=1)
    min_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    max_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    min_days: Mapped[int | None] = mapped_column(nullable=True)
    max_days: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    levels: Mapped[list["ApprovalLevelModel"]] = relationship(
        "ApprovalLevelModel",
        back_populates="policy",
        order_by="ApprovalLevelModel.level_order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalPolicy {self.name} {self.module} "
            f"priority={self.priority} active={self.is_active}>"
        )

    def to_dto(self) -> ApprovalPolicy:
        """Convert ORM model to frozen domain DTO."""
        from approval_kernel.domain.approval import ApprovalPolicy as ApprovalPolicyDTO

        return ApprovalPolicyDTO(
            policy_id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            module=self.module,
            priority=self.priority,
            is_active=self.is_active,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            min_days=self.min_days,
            max_days=self.max_days,
            created_at=self.created_at,
            levels=tuple(level.to_dto() for level in self.levels),
        )


class ApprovalLevelModel(Base):
    """One rung of a policy's chain."""

    __tablename__ = "approval_levels"

    __table_args__ = (
        UniqueConstraint(
            "policy_id", "level_order",
            name="uq_approval_levels_policy_order",
        ),
        CheckConstraint("level_order >= 1", name="ck_approval_levels_order_positive"),
    )

    policy_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_policies.id"),
        nullable=False,
    )
    level_order: Mapped[int] = mapped_column(nullable=False)
    approver_role: Mapped[RoleName] = mapped_column(nullable=False)

    policy: Mapped[ApprovalPolicyModel] = relationship(
        "ApprovalPolicyModel", back_populates="levels",
    )

    def __repr__(self) -> str:
        return f"<ApprovalLevel {self.level_order}:{self.approver_role}>"

    def to_dto(self) -> ApprovalLevel:
        from approval_kernel.domain.approval import ApprovalLevel as ApprovalLevelDTO

        return ApprovalLevelDTO(
            level_order=self.level_order,
            approver_role=self.approver_role,
        )
