"""
Typed exception hierarchy for the approval kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure in the approval engine is a result the caller must branch
on.  Catch by type, never by message:

    try:
        workflow.approve(tenant_id, step_id, actor_id)
    except StepNotPendingError:
        refresh_and_retry()
    except NotAuthorizedError as e:
        api_response(code=e.code, step=e.step_id)

Each class carries a class-level ``code`` (machine-readable, API-safe) and
stores its context as attributes so it survives logging and serialization.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ApprovalKernelError (base)
    |
    +-- ConfigurationError
    |   +-- PolicyNotFoundError
    |   +-- PolicyHasNoLevelsError
    |   +-- InvalidPolicyError
    |
    +-- NotFoundError
    |   +-- StepNotFoundError
    |   +-- DelegationNotFoundError
    |   +-- PolicyRecordNotFoundError
    |
    +-- WorkflowStateError
    |   +-- StepNotPendingError
    |   +-- StepOutOfOrderError
    |   +-- WorkflowAlreadyExistsError
    |   +-- DelegationNotActiveError
    |
    +-- AuthorizationError
    |   +-- NotAuthorizedError
    |   +-- SelfDelegationNotAllowedError
    |   +-- OverlappingDelegationError
    |
    +-- ValidationError
    |   +-- InvalidDateRangeError
    |   +-- InvalidAmountError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | POLICY_NOT_FOUND            | No active policy matches the submission
                | POLICY_HAS_NO_LEVELS        | Resolved policy has zero levels
                | INVALID_POLICY              | Malformed levels or thresholds
----------------|-----------------------------|-----------------------------------------
Not found       | STEP_NOT_FOUND              | Step absent or owned by another tenant
                | DELEGATION_NOT_FOUND        | Delegation absent or other tenant
                | POLICY_RECORD_NOT_FOUND     | Policy id absent or other tenant
----------------|-----------------------------|-----------------------------------------
State           | STEP_NOT_PENDING            | Step already decided (lost a race)
                | STEP_OUT_OF_ORDER           | An earlier level is still open
                | WORKFLOW_ALREADY_EXISTS     | Entity already has a chain
                | DELEGATION_NOT_ACTIVE       | Delegation already deactivated
----------------|-----------------------------|-----------------------------------------
Authorization   | NOT_AUTHORIZED              | Actor lacks role and delegation
                | SELF_DELEGATION_NOT_ALLOWED | delegator == delegatee
                | OVERLAPPING_DELEGATION      | Delegator already has an active window
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_DATE_RANGE          | start > end, naive or too long window
                | INVALID_AMOUNT              | Amount is not a finite decimal
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Hard delete of steps or delegations

===============================================================================
HANDLING CATEGORIES
===============================================================================

- ConfigurationError -> surface to the submitting collaborator, never retry.
- WorkflowStateError -> "refresh and retry the intended action".
- AuthorizationError -> fail closed, logged for audit, never retried.
- NotFoundError      -> also used for cross-tenant access so existence
                        is never leaked.
===============================================================================
"""


class ApprovalKernelError(Exception):
    """
    Base exception for all approval kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "APPROVAL_KERNEL_ERROR"


# Configuration errors


class ConfigurationError(ApprovalKernelError):
    """Base exception for policy configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class PolicyNotFoundError(ConfigurationError):
    """No active policy matches the submission."""

    code: str = "POLICY_NOT_FOUND"

    def __init__(
        self,
        tenant_id: str,
        module: str,
        amount: str | None = None,
        days: int | None = None,
    ):
        self.tenant_id = tenant_id
        self.module = module
        self.amount = amount
        self.days = days
        super().__init__(
            f"No active approval policy for module {module} "
            f"(amount={amount}, days={days})"
        )


class PolicyHasNoLevelsError(ConfigurationError):
    """Resolved policy defines no approval levels."""

    code: str = "POLICY_HAS_NO_LEVELS"

    def __init__(self, policy_id: str, policy_name: str):
        self.policy_id = policy_id
        self.policy_name = policy_name
        super().__init__(f"Approval policy {policy_name} ({policy_id}) has no levels")


class InvalidPolicyError(ConfigurationError):
    """Policy definition is structurally invalid."""

    code: str = "INVALID_POLICY"

    def __init__(self, policy_name: str, reason: str):
        self.policy_name = policy_name
        self.reason = reason
        super().__init__(f"Invalid approval policy {policy_name}: {reason}")


# Not-found errors


class NotFoundError(ApprovalKernelError):
    """Base exception for missing (or other-tenant) records."""

    code: str = "NOT_FOUND"


class StepNotFoundError(NotFoundError):
    """Approval step not found in the caller's tenant."""

    code: str = "STEP_NOT_FOUND"

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Approval step not found: {step_id}")


class DelegationNotFoundError(NotFoundError):
    """Delegation not found in the caller's tenant."""

    code: str = "DELEGATION_NOT_FOUND"

    def __init__(self, delegation_id: str):
        self.delegation_id = delegation_id
        super().__init__(f"Delegation not found: {delegation_id}")


class PolicyRecordNotFoundError(NotFoundError):
    """Policy id not found in the caller's tenant."""

    code: str = "POLICY_RECORD_NOT_FOUND"

    def __init__(self, policy_id: str):
        self.policy_id = policy_id
        super().__init__(f"Approval policy not found: {policy_id}")


# Workflow state errors


class WorkflowStateError(ApprovalKernelError):
    """Base exception for state conflicts (refresh and retry)."""

    code: str = "WORKFLOW_STATE_ERROR"


class StepNotPendingError(WorkflowStateError):
    """Step has already left PENDING."""

    code: str = "STEP_NOT_PENDING"

    def __init__(self, step_id: str, status: str):
        self.step_id = step_id
        self.status = status
        super().__init__(f"Approval step {step_id} is not pending (status={status})")


class StepOutOfOrderError(WorkflowStateError):
    """An earlier level of the same chain is still pending."""

    code: str = "STEP_OUT_OF_ORDER"

    def __init__(self, step_id: str, level_order: int, blocking_level_order: int):
        self.step_id = step_id
        self.level_order = level_order
        self.blocking_level_order = blocking_level_order
        super().__init__(
            f"Approval step {step_id} (level {level_order}) cannot be acted on "
            f"before level {blocking_level_order}"
        )


class WorkflowAlreadyExistsError(WorkflowStateError):
    """Entity already has an approval chain."""

    code: str = "WORKFLOW_ALREADY_EXISTS"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"Approval chain already exists for {entity_type} {entity_id}")


class DelegationNotActiveError(WorkflowStateError):
    """Delegation was already deactivated."""

    code: str = "DELEGATION_NOT_ACTIVE"

    def __init__(self, delegation_id: str):
        self.delegation_id = delegation_id
        super().__init__(f"Delegation {delegation_id} is no longer active")


# Authorization errors


class AuthorizationError(ApprovalKernelError):
    """Base exception for authorization failures (fail closed)."""

    code: str = "AUTHORIZATION_ERROR"


class NotAuthorizedError(AuthorizationError):
    """Actor may not perform the action."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__(f"Actor {actor_id} not authorized to {action}: {reason}")


class SelfDelegationNotAllowedError(AuthorizationError):
    """Delegator and delegatee are the same user."""

    code: str = "SELF_DELEGATION_NOT_ALLOWED"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} cannot delegate approval authority to themselves")


class OverlappingDelegationError(AuthorizationError):
    """Delegator already has an active delegation covering the window."""

    code: str = "OVERLAPPING_DELEGATION"

    def __init__(
        self,
        delegator_id: str,
        existing_delegation_id: str,
        overlap_start: str,
        overlap_end: str,
    ):
        self.delegator_id = delegator_id
        self.existing_delegation_id = existing_delegation_id
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        super().__init__(
            f"Delegator {delegator_id} already has active delegation "
            f"{existing_delegation_id} ({overlap_start} to {overlap_end})"
        )


# Validation errors


class ValidationError(ApprovalKernelError):
    """Base exception for input validation failures."""

    code: str = "VALIDATION_ERROR"


class InvalidDateRangeError(ValidationError):
    """Delegation window is malformed."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: str, end_date: str, reason: str):
        self.start_date = start_date
        self.end_date = end_date
        self.reason = reason
        super().__init__(f"Invalid date range {start_date} to {end_date}: {reason}")


class InvalidAmountError(ValidationError):
    """Submitted amount is not a finite decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}")


# Immutability errors


class ImmutabilityError(ApprovalKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to hard-delete or rewrite a record that is append-only."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
