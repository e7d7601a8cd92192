"""
Module: approval_kernel.models.role_assignment
Responsibility: Tenant role membership, the source for "who may approve".

Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import Base
from approval_kernel.db.types import ActorId, RoleName, TenantId


class TenantRoleAssignmentModel(Base):
    """A user holding a role within one tenant."""

    __tablename__ = "tenant_role_assignments"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "user_id", "role",
            name="uq_tenant_role_assignments",
        ),
    )

    tenant_id: Mapped[TenantId] = mapped_column(nullable=False)
    user_id: Mapped[ActorId] = mapped_column(nullable=False)
    role: Mapped[RoleName] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<TenantRoleAssignment {self.tenant_id}:{self.user_id}={self.role}>"
