"""
SqlRoleDirectory -- tenant role membership backed by the database.

Responsibility:
    Answers "which roles does this user hold in this tenant" from the
    ``tenant_role_assignments`` table, and lets the employee-records
    collaborator grant or revoke roles.  Any object satisfying the
    ``RoleDirectory`` protocol can replace it.

Invariants enforced:
    - Every lookup is scoped by tenant; a role held in tenant A grants
      nothing in tenant B.
    - Role membership is always looked up, never taken from the caller.
"""

from sqlalchemy import delete, select

from approval_kernel.logging_config import get_logger
from approval_kernel.models.role_assignment import TenantRoleAssignmentModel
from approval_kernel.services.base import BaseService

logger = get_logger("services.role_directory")


class SqlRoleDirectory(BaseService[TenantRoleAssignmentModel]):
    """SQL-backed ``RoleDirectory``."""

    def roles_for(self, tenant_id: str, user_id: str) -> frozenset[str]:
        rows = self.session.scalars(
            select(TenantRoleAssignmentModel.role).where(
                TenantRoleAssignmentModel.tenant_id == tenant_id,
                TenantRoleAssignmentModel.user_id == user_id,
            )
        ).all()
        return frozenset(rows)

    def holds_role(self, tenant_id: str, user_id: str, role: str) -> bool:
        found = self.session.scalar(
            select(TenantRoleAssignmentModel.id).where(
                TenantRoleAssignmentModel.tenant_id == tenant_id,
                TenantRoleAssignmentModel.user_id == user_id,
                TenantRoleAssignmentModel.role == role,
            )
        )
        return found is not None

    def assign_role(self, tenant_id: str, user_id: str, role: str) -> None:
        """Grant ``role`` to the user. Granting a held role is a no-op."""
        if self.holds_role(tenant_id, user_id, role):
            return
        self.session.add(
            TenantRoleAssignmentModel(tenant_id=tenant_id, user_id=user_id, role=role)
        )
        self.session.flush()
        logger.info(
            "role_assigned",
            extra={"tenant_id": tenant_id, "user_id": user_id, "role": role},
        )

    def revoke_role(self, tenant_id: str, user_id: str, role: str) -> bool:
        """Remove ``role`` from the user. Returns False if it was not held."""
        result = self.session.execute(
            delete(TenantRoleAssignmentModel).where(
                TenantRoleAssignmentModel.tenant_id == tenant_id,
                TenantRoleAssignmentModel.user_id == user_id,
                TenantRoleAssignmentModel.role == role,
            )
        )
        revoked = result.rowcount > 0
        if revoked:
            logger.info(
                "role_revoked",
                extra={"tenant_id": tenant_id, "user_id": user_id, "role": role},
            )
        return revoked
