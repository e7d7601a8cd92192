"""
Tests for PolicyStore -- tenant-scoped policy persistence.

Covers:
- create_policy(): level normalization, bound validation, level validation
- get_policy()/deactivate_policy(): cross-tenant isolation
- list_policies()/load_candidates(): filtering and ordering
- import_policy_defs(): seeding from YAML fragments
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from approval_config import SAMPLE_POLICIES_PATH, load_policy_defs
from approval_kernel.domain.approval import ApprovalLevel, ApprovalModule
from approval_kernel.exceptions import InvalidPolicyError, PolicyRecordNotFoundError
from approval_kernel.services.policy_store import PolicyStore

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"


@pytest.fixture
def store(session, deterministic_clock):
    return PolicyStore(session, deterministic_clock)


class TestCreatePolicy:

    def test_levels_sorted_and_module_stored_as_string(self, store):
        policy = store.create_policy(
            TENANT,
            "Purchases",
            ApprovalModule.PURCHASE_REQUEST,
            levels=[(2, "DIRECTOR"), ApprovalLevel(1, "MANAGER")],
            min_amount="100",
            max_amount=5000,
        )

        assert policy.module == "PURCHASE_REQUEST"
        assert [lvl.level_order for lvl in policy.levels] == [1, 2]
        assert policy.min_amount == Decimal("100")
        assert policy.max_amount == Decimal("5000")
        assert policy.is_active

    def test_empty_levels_allowed(self, store):
        policy = store.create_policy(TENANT, "Nothing", "LEAVE_REQUEST", levels=[])
        assert policy.levels == ()

    @pytest.mark.parametrize(
        "levels,fragment",
        [
            ([(0, "MANAGER")], "level_order must be >= 1"),
            ([(1, "")], "no approver role"),
            ([(1, "MANAGER"), (1, "HR_MANAGER")], "duplicate level_order"),
        ],
    )
    def test_invalid_levels(self, store, levels, fragment):
        with pytest.raises(InvalidPolicyError) as exc_info:
            store.create_policy(TENANT, "Bad", "LEAVE_REQUEST", levels=levels)
        assert fragment in exc_info.value.reason

    def test_inverted_amount_bounds(self, store):
        with pytest.raises(InvalidPolicyError):
            store.create_policy(
                TENANT, "Bad", "PURCHASE_REQUEST", levels=[(1, "MANAGER")],
                min_amount=Decimal("10"), max_amount=Decimal("1"),
            )

    @pytest.mark.parametrize("field", ["min_amount", "max_amount"])
    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_unusable_threshold(self, store, field, value):
        with pytest.raises(InvalidPolicyError) as exc_info:
            store.create_policy(
                TENANT, "Bad", "PURCHASE_REQUEST", levels=[(1, "MANAGER")],
                **{field: value},
            )
        assert field in exc_info.value.reason
        assert store.list_policies(TENANT) == []

    def test_inverted_day_bounds(self, store):
        with pytest.raises(InvalidPolicyError):
            store.create_policy(
                TENANT, "Bad", "LEAVE_REQUEST", levels=[(1, "MANAGER")],
                min_days=10, max_days=2,
            )


class TestReadAndDeactivate:

    def test_get_policy_other_tenant_not_found(self, store):
        policy = store.create_policy(TENANT, "Leave", "LEAVE_REQUEST", [(1, "MANAGER")])
        assert store.get_policy(TENANT, policy.policy_id).name == "Leave"
        with pytest.raises(PolicyRecordNotFoundError):
            store.get_policy(OTHER_TENANT, policy.policy_id)

    def test_unknown_policy(self, store):
        with pytest.raises(PolicyRecordNotFoundError):
            store.get_policy(TENANT, uuid4())

    def test_deactivate_removes_from_candidates(self, store):
        policy = store.create_policy(TENANT, "Leave", "LEAVE_REQUEST", [(1, "MANAGER")])
        assert store.deactivate_policy(TENANT, policy.policy_id).is_active is False
        assert store.load_candidates(TENANT, "LEAVE_REQUEST") == []
        assert len(store.list_policies(TENANT)) == 1

    def test_deactivate_other_tenant_not_found(self, store):
        policy = store.create_policy(TENANT, "Leave", "LEAVE_REQUEST", [(1, "MANAGER")])
        with pytest.raises(PolicyRecordNotFoundError):
            store.deactivate_policy(OTHER_TENANT, policy.policy_id)

    def test_list_filters_module_and_tenant(self, store, deterministic_clock):
        store.create_policy(TENANT, "Leave", "LEAVE_REQUEST", [(1, "MANAGER")], priority=2)
        deterministic_clock.advance()
        store.create_policy(TENANT, "Leave urgent", "LEAVE_REQUEST", [(1, "MANAGER")], priority=1)
        store.create_policy(TENANT, "Buy", "PURCHASE_REQUEST", [(1, "MANAGER")])
        store.create_policy(OTHER_TENANT, "Leave", "LEAVE_REQUEST", [(1, "MANAGER")])

        names = [p.name for p in store.list_policies(TENANT, module=ApprovalModule.LEAVE_REQUEST)]
        assert names == ["Leave urgent", "Leave"]
        assert len(store.list_policies(TENANT)) == 3


class TestImportPolicyDefs:

    def test_sample_policies_import(self, store):
        defs = load_policy_defs(SAMPLE_POLICIES_PATH)
        created = store.import_policy_defs(TENANT, defs)

        assert len(created) == len(defs)
        large = next(p for p in created if p.name == "Large purchase")
        assert large.min_amount == Decimal("1000")
        assert [lvl.approver_role for lvl in large.levels] == [
            "MANAGER", "FINANCE_MANAGER", "DIRECTOR",
        ]
