"""Tests for StepSelector -- read-side queries over approval chains."""

import pytest

from approval_kernel.domain.approval import ApprovalModule, StepStatus
from approval_kernel.selectors.step_selector import StepSelector

TENANT = "tenant-a"


@pytest.fixture
def selector(session):
    return StepSelector(session)


@pytest.fixture
def submit(workflow, create_policy, deterministic_clock):
    """Submit LEAVE_REQUEST entities against a [MANAGER, HR_MANAGER] policy."""
    create_policy(("MANAGER", "HR_MANAGER"))

    def _submit(entity_id, tenant_id=TENANT):
        if tenant_id != TENANT:
            create_policy(("MANAGER", "HR_MANAGER"), tenant_id=tenant_id)
        steps = workflow.submit(
            tenant_id, ApprovalModule.LEAVE_REQUEST, None, "LEAVE_REQUEST", entity_id,
        ).steps
        deterministic_clock.advance()
        return steps

    return _submit


class TestChainReads:

    def test_get_chain_ordered(self, selector, submit):
        steps = submit("leave-1")
        chain = selector.get_chain(TENANT, "LEAVE_REQUEST", "leave-1")
        assert [s.step_id for s in chain] == [s.step_id for s in steps]
        assert [s.level_order for s in chain] == [1, 2]

    def test_unknown_entity(self, selector):
        assert selector.get_chain(TENANT, "LEAVE_REQUEST", "missing") == []
        assert not selector.has_chain(TENANT, "LEAVE_REQUEST", "missing")
        assert selector.get_current_step(TENANT, "LEAVE_REQUEST", "missing") is None

    def test_entity_type_is_part_of_identity(self, selector, submit):
        submit("x-1")
        assert selector.has_chain(TENANT, "LEAVE_REQUEST", "x-1")
        assert not selector.has_chain(TENANT, "PURCHASE_REQUEST", "x-1")

    def test_chain_reflects_bulk_updates(self, selector, workflow, submit, grant):
        grant("admin-1", "ADMIN")
        submit("leave-1")
        selector.get_chain(TENANT, "LEAVE_REQUEST", "leave-1")

        workflow.admin_bypass(TENANT, "LEAVE_REQUEST", "leave-1", "admin-1")

        chain = selector.get_chain(TENANT, "LEAVE_REQUEST", "leave-1")
        assert {s.status for s in chain} == {StepStatus.APPROVED}


class TestPendingForRoles:

    def test_empty_roles(self, selector, submit):
        submit("leave-1")
        assert selector.get_pending_for_roles(TENANT, []) == []

    def test_oldest_first(self, selector, submit):
        first = submit("leave-1")
        second = submit("leave-2")

        pending = selector.get_pending_for_roles(TENANT, {"MANAGER"})
        assert [s.step_id for s in pending] == [first[0].step_id, second[0].step_id]

    def test_blocked_levels_hidden(self, selector, workflow, submit, grant):
        grant("mgr-1", "MANAGER")
        first = submit("leave-1")
        submit("leave-2")
        workflow.approve(TENANT, first[0].step_id, "mgr-1")

        hr_pending = selector.get_pending_for_roles(TENANT, ["HR_MANAGER"])
        assert [s.step_id for s in hr_pending] == [first[1].step_id]

        both = selector.get_pending_for_roles(TENANT, ["MANAGER", "HR_MANAGER"])
        assert {s.entity_id for s in both} == {"leave-1", "leave-2"}
        assert len(both) == 2

    def test_closed_chains_excluded(self, selector, workflow, submit, grant):
        grant("mgr-1", "MANAGER")
        steps = submit("leave-1")
        workflow.reject(TENANT, steps[0].step_id, "mgr-1", "no")

        assert selector.get_pending_for_roles(TENANT, ["MANAGER", "HR_MANAGER"]) == []

    def test_tenant_scoped(self, selector, submit):
        submit("leave-1", tenant_id="tenant-b")
        assert selector.get_pending_for_roles(TENANT, ["MANAGER"]) == []
        assert len(selector.get_pending_for_roles("tenant-b", ["MANAGER"])) == 1
