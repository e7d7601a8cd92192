"""
ORM-Level Immutability Enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable                   | Operation blocked
---------------------|----------------------------------|-------------------
ApprovalStep         | ALWAYS                           | DELETE
ApprovalStep         | After leaving PENDING            | UPDATE
ApproverDelegation   | ALWAYS                           | DELETE
ApproverDelegation   | After deactivation               | UPDATE

Step transitions are issued as conditional UPDATE statements through the
workflow engine; those are Core statements and do not pass through these
listeners.  The listeners catch ORM-level tampering: a session that loads a
decided step and edits it, or a ``session.delete()`` of history.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
USAGE
===============================================================================

    from approval_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    from approval_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from approval_kernel.exceptions import ImmutabilityViolationError
from approval_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str, field=None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _previous_value(target, attribute: str):
    """Value of ``attribute`` as it was before this flush."""
    history = get_history(target, attribute)
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return getattr(target, attribute)


def _first_changed_field(target) -> str | None:
    for attr in inspect(target).attrs:
        if attr.history.has_changes():
            return attr.key
    return None


def _check_step_immutability(mapper, connection, target):
    """
    Prevent edits to a step that has already been decided.

    The PENDING -> terminal transition itself is allowed; any change after
    the step left PENDING is blocked.
    """
    from approval_kernel.models.approval_step import ApprovalStepModel

    if not isinstance(target, ApprovalStepModel):
        return

    previous = _previous_value(target, "status")
    if previous is None or previous == "PENDING":
        return

    field = _first_changed_field(target)
    if field is not None:
        _blocked(
            "ApprovalStep",
            str(target.id),
            "UPDATE",
            f"Cannot modify field '{field}' on decided step ({previous})",
            field=field,
        )


def _check_step_delete(mapper, connection, target):
    from approval_kernel.models.approval_step import ApprovalStepModel

    if not isinstance(target, ApprovalStepModel):
        return

    _blocked(
        "ApprovalStep",
        str(target.id),
        "DELETE",
        "Approval steps are permanent history and cannot be deleted",
    )


def _check_delegation_immutability(mapper, connection, target):
    """Deactivation is irreversible: a deactivated grant accepts no edits."""
    from approval_kernel.models.delegation import ApproverDelegationModel

    if not isinstance(target, ApproverDelegationModel):
        return

    if _previous_value(target, "is_active"):
        return

    field = _first_changed_field(target)
    if field is not None:
        _blocked(
            "ApproverDelegation",
            str(target.id),
            "UPDATE",
            f"Cannot modify field '{field}' on deactivated delegation",
            field=field,
        )


def _check_delegation_delete(mapper, connection, target):
    from approval_kernel.models.delegation import ApproverDelegationModel

    if not isinstance(target, ApproverDelegationModel):
        return

    _blocked(
        "ApproverDelegation",
        str(target.id),
        "DELETE",
        "Delegations are deactivated, never deleted",
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Calling it twice is harmless.
    """
    from approval_kernel.models.approval_step import ApprovalStepModel
    from approval_kernel.models.delegation import ApproverDelegationModel

    _safe_add_listener(ApprovalStepModel, "before_update", _check_step_immutability)
    _safe_add_listener(ApprovalStepModel, "before_delete", _check_step_delete)
    _safe_add_listener(
        ApproverDelegationModel, "before_update", _check_delegation_immutability,
    )
    _safe_add_listener(ApproverDelegationModel, "before_delete", _check_delegation_delete)


def _safe_add_listener(target, event_name, listener_fn):
    if not event.contains(target, event_name, listener_fn):
        event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """
    Safely remove an event listener, ignoring if not registered.
    """
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    from approval_kernel.models.approval_step import ApprovalStepModel
    from approval_kernel.models.delegation import ApproverDelegationModel

    _safe_remove_listener(ApprovalStepModel, "before_update", _check_step_immutability)
    _safe_remove_listener(ApprovalStepModel, "before_delete", _check_step_delete)
    _safe_remove_listener(
        ApproverDelegationModel, "before_update", _check_delegation_immutability,
    )
    _safe_remove_listener(ApproverDelegationModel, "before_delete", _check_delegation_delete)
