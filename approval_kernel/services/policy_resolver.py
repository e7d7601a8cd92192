"""
PolicyResolver -- picks the single policy governing a submission.

Loads the tenant's active candidates for the module from the
``PolicyStore`` and hands selection to the pure
``approval_engines.policy_matching.select_policy``.
"""

from __future__ import annotations

from decimal import Decimal

from approval_engines.policy_matching import select_policy, to_amount
from approval_kernel.domain.approval import ApprovalModule, ApprovalPolicy, coerce_module
from approval_kernel.exceptions import InvalidAmountError, PolicyNotFoundError
from approval_kernel.logging_config import get_logger
from approval_kernel.services.policy_store import PolicyStore

logger = get_logger("services.policy_resolver")


class PolicyResolver:
    """Resolve ``(tenant, module, amount[, days])`` to one policy."""

    def __init__(self, policy_store: PolicyStore):
        self._store = policy_store

    def resolve(
        self,
        tenant_id: str,
        module: ApprovalModule | str,
        amount: Decimal | int | str | None = None,
        days: int | None = None,
    ) -> ApprovalPolicy:
        """
        Raises:
            InvalidAmountError: ``amount`` is not a finite decimal.
            PolicyNotFoundError: No active policy of the tenant matches.
        """
        module_value = coerce_module(module)
        try:
            amount = to_amount(amount)
        except ValueError as exc:
            raise InvalidAmountError(str(amount), str(exc)) from exc

        candidates = self._store.load_candidates(tenant_id, module_value)
        policy = select_policy(candidates, module_value, amount, days)

        if policy is None:
            logger.info(
                "approval_policy_not_found",
                extra={
                    "tenant_id": tenant_id,
                    "approval_module": module_value,
                    "amount": amount,
                    "days": days,
                    "candidate_count": len(candidates),
                },
            )
            raise PolicyNotFoundError(
                tenant_id,
                module_value,
                str(amount) if amount is not None else None,
                days,
            )

        logger.debug(
            "approval_policy_resolved",
            extra={
                "tenant_id": tenant_id,
                "policy_id": str(policy.policy_id),
                "policy_name": policy.name,
                "candidate_count": len(candidates),
            },
        )
        return policy
