"""
Approval domain types (``approval_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the approval workflow engine.  Defines the step
lifecycle state machine, policy/level templates, step and delegation
snapshots, authorization and action results, and the collaborator-facing
protocols (role directory, workflow listener).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Step lifecycle -- ``STEP_TRANSITIONS`` defines the only valid status
  transitions.  Terminal states have no outgoing edges; SKIPPED is only
  reachable as the cascade of a sibling's rejection.
* Template vs. instance -- ``ApprovalStep`` copies ``level_order`` and
  ``required_role`` from the level at materialization time, so policy
  edits never reach in-flight chains.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID


# =========================================================================
# Modules
# =========================================================================


class ApprovalModule(str, Enum):
    """Business-entity categories a policy can govern."""

    LEAVE_REQUEST = "LEAVE_REQUEST"
    PURCHASE_REQUEST = "PURCHASE_REQUEST"
    ASSET_REQUEST = "ASSET_REQUEST"
    SPEND_REQUEST = "SPEND_REQUEST"


def coerce_module(module: ApprovalModule | str) -> str:
    """Return the stored string form of a module."""
    if isinstance(module, ApprovalModule):
        return module.value
    return module


# =========================================================================
# Step Status Lifecycle
# =========================================================================


class StepStatus(str, Enum):
    """Approval step lifecycle states."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"


STEP_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({
        StepStatus.APPROVED,
        StepStatus.REJECTED,
        StepStatus.SKIPPED,
    }),
    StepStatus.APPROVED: frozenset(),
    StepStatus.REJECTED: frozenset(),
    StepStatus.SKIPPED: frozenset(),
}

TERMINAL_STEP_STATUSES: frozenset[StepStatus] = frozenset({
    StepStatus.APPROVED,
    StepStatus.REJECTED,
    StepStatus.SKIPPED,
})


class WorkflowOutcome(str, Enum):
    """What an action did to the entity's chain as a whole."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"
    REJECTED = "REJECTED"


class ChainStatus(str, Enum):
    """Summary status of an entity's chain."""

    NOT_STARTED = "NOT_STARTED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# =========================================================================
# Policy Templates
# =========================================================================


@dataclass(frozen=True)
class ApprovalLevel:
    """One rung of a policy chain."""

    level_order: int
    approver_role: str


@dataclass(frozen=True)
class ApprovalPolicy:
    """A tenant-configured approval policy.

    ``priority`` is a rank: lower number = higher precedence.  A ``None``
    threshold is unbounded on that side.
    """

    policy_id: UUID
    tenant_id: str
    name: str
    module: str
    priority: int
    is_active: bool = True
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    min_days: int | None = None
    max_days: int | None = None
    created_at: datetime | None = None
    levels: tuple[ApprovalLevel, ...] = ()


# =========================================================================
# Steps and Delegations
# =========================================================================


@dataclass(frozen=True)
class ApprovalStep:
    """Immutable snapshot of one materialized approval step."""

    step_id: UUID
    tenant_id: str
    entity_type: str
    entity_id: str
    level_order: int
    required_role: str
    status: StepStatus = StepStatus.PENDING
    approver_id: str | None = None
    action_at: datetime | None = None
    notes: str | None = None
    rejection_reason: str | None = None
    policy_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == StepStatus.PENDING


@dataclass(frozen=True)
class ApproverDelegation:
    """Immutable snapshot of a delegation grant."""

    delegation_id: UUID
    tenant_id: str
    delegator_id: str
    delegatee_id: str
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    reason: str | None = None
    created_at: datetime | None = None
    created_by: str | None = None
    deactivated_at: datetime | None = None
    deactivated_by: str | None = None


# =========================================================================
# Results
# =========================================================================


@dataclass(frozen=True)
class AuthorizationResult:
    """Outcome of "may this actor act for this role right now"."""

    allowed: bool
    acting_as_user_id: str | None = None
    via_delegation: bool = False
    delegation_id: UUID | None = None
    reason: str = ""


@dataclass(frozen=True)
class StepActionResult:
    """Result of approving, rejecting or bypassing a chain."""

    step: ApprovalStep
    outcome: WorkflowOutcome
    next_step: ApprovalStep | None = None
    acting_as_user_id: str | None = None
    via_delegation: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.outcome != WorkflowOutcome.IN_PROGRESS


@dataclass(frozen=True)
class SubmissionResult:
    """Result of submitting an entity into the workflow."""

    policy: ApprovalPolicy
    steps: tuple[ApprovalStep, ...]


@dataclass(frozen=True)
class ChainSummary:
    """Progress view of an entity's chain."""

    total_steps: int
    completed_steps: int
    current_level: int | None
    status: ChainStatus


# =========================================================================
# Collaborator Protocols
# =========================================================================


class RoleDirectory(Protocol):
    """Pluggable interface for tenant role membership lookups."""

    def roles_for(self, tenant_id: str, user_id: str) -> frozenset[str]:
        """Return all roles the user holds in the tenant."""
        ...

    def holds_role(self, tenant_id: str, user_id: str, role: str) -> bool:
        """Check if the user holds a specific role in the tenant."""
        ...


class WorkflowListener(Protocol):
    """Callbacks the submitting collaborator implements.

    The engine only reports facts; updating the parent entity (leave
    request, purchase request, ...) is the collaborator's job.
    """

    def on_workflow_complete(self, entity_type: str, entity_id: str) -> None:
        ...

    def on_workflow_rejected(
        self, entity_type: str, entity_id: str, reason: str,
    ) -> None:
        ...


class NullWorkflowListener:
    """Listener used when the caller does not register one."""

    def on_workflow_complete(self, entity_type: str, entity_id: str) -> None:
        return None

    def on_workflow_rejected(
        self, entity_type: str, entity_id: str, reason: str,
    ) -> None:
        return None
