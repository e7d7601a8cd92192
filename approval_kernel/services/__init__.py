"""Kernel services -- the imperative shell of the approval engine."""

from approval_kernel.services.approval_workflow import ApprovalWorkflowService
from approval_kernel.services.delegation_manager import DelegationManager
from approval_kernel.services.delegation_resolver import DelegationResolver
from approval_kernel.services.policy_resolver import PolicyResolver
from approval_kernel.services.policy_store import PolicyStore
from approval_kernel.services.role_directory import SqlRoleDirectory
from approval_kernel.services.step_materializer import StepMaterializer
from approval_kernel.services.workflow_engine import WorkflowEngine

__all__ = [
    "ApprovalWorkflowService",
    "DelegationManager",
    "DelegationResolver",
    "PolicyResolver",
    "PolicyStore",
    "SqlRoleDirectory",
    "StepMaterializer",
    "WorkflowEngine",
]
