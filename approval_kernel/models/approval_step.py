"""
Module: approval_kernel.models.approval_step
Responsibility: ORM persistence for materialized approval steps.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One chain per entity: UNIQUE(tenant_id, entity_type, entity_id,
      level_order).  A duplicate submission that races past the service's
      existence check fails here.
    - Status values are limited by a CHECK constraint; transitions are
      applied by the workflow engine's conditional UPDATEs.
    - Steps are never deleted (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate chain for an entity.
    - ImmutabilityViolationError on ORM delete, or ORM edit of a decided step.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import Base, UUIDString
from approval_kernel.db.types import (
    ActorId,
    EntityId,
    EntityType,
    LongText,
    RoleName,
    ShortCode,
    TenantId,
)

if TYPE_CHECKING:
    from approval_kernel.domain.approval import ApprovalStep


class ApprovalStepModel(Base):
    """Persistent approval step.

    ``level_order`` and ``required_role`` are copied from the policy level
    at submission and never re-read from the policy.
    """

    __tablename__ = "approval_steps"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'SKIPPED')",
            name="ck_approval_steps_valid_status",
        ),
        UniqueConstraint(
            "tenant_id", "entity_type", "entity_id", "level_order",
            name="uq_approval_steps_entity_level",
        ),
        # Pending-for-actor query
        Index(
            "ix_approval_steps_pending_role",
            "tenant_id", "status", "required_role",
        ),
        Index(
            "ix_approval_steps_entity",
            "tenant_id", "entity_type", "entity_id", "status",
        ),
    )

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)
    entity_type: Mapped[EntityType] = mapped_column(nullable=False)
    entity_id: Mapped[EntityId] = mapped_column(nullable=False)
    level_order: Mapped[int] = mapped_column(nullable=False)
    required_role: Mapped[RoleName] = mapped_column(nullable=False)
    status: Mapped[ShortCode] = mapped_column(nullable=False, default="PENDING")
    approver_id: Mapped[ActorId | None] = mapped_column(nullable=True)
    action_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[LongText | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[LongText | None] = mapped_column(nullable=True)
    policy_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("approval_policies.id"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ApprovalStep {self.entity_type}/{self.entity_id} "
            f"L{self.level_order} {self.required_role} status={self.status}>"
        )

    def to_dto(self) -> ApprovalStep:
        """Convert ORM model to frozen domain DTO."""
        from approval_kernel.domain.approval import (
            ApprovalStep as ApprovalStepDTO,
            StepStatus,
        )

        return ApprovalStepDTO(
            step_id=self.id,
            tenant_id=self.tenant_id,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            level_order=self.level_order,
            required_role=self.required_role,
            status=StepStatus(self.status),
            approver_id=self.approver_id,
            action_at=self.action_at,
            notes=self.notes,
            rejection_reason=self.rejection_reason,
            policy_id=self.policy_id,
            created_at=self.created_at,
        )
