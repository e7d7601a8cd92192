"""SQLAlchemy ORM models for the approval kernel."""

from approval_kernel.models.approval_step import ApprovalStepModel
from approval_kernel.models.delegation import ApproverDelegationModel
from approval_kernel.models.policy import ApprovalLevelModel, ApprovalPolicyModel
from approval_kernel.models.role_assignment import TenantRoleAssignmentModel

__all__ = [
    "ApprovalPolicyModel",
    "ApprovalLevelModel",
    "ApprovalStepModel",
    "ApproverDelegationModel",
    "TenantRoleAssignmentModel",
]
