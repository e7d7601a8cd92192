"""
Concurrency tests for step transitions, chain creation and delegation
windows.

Each worker runs in its own session and transaction.  A Barrier releases
all workers at once so they race on the same step (or the same entity).

On SQLite the write lock serializes the transactions and the losers are
stopped by the pending pre-check; on PostgreSQL (DATABASE_URL) they race on
the conditional UPDATE, the unique chain constraint and the per-delegator
lock.  Either way exactly one worker may win.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from threading import Barrier

import pytest

from approval_kernel.domain.approval import StepStatus
from approval_kernel.exceptions import (
    OverlappingDelegationError,
    StepNotPendingError,
    WorkflowAlreadyExistsError,
)
from approval_kernel.services.approval_workflow import ApprovalWorkflowService
from approval_kernel.services.role_directory import SqlRoleDirectory

TENANT = "tenant-a"
NUM_THREADS = 8


class CompletionLog:
    """Listener shared by every worker thread."""

    def __init__(self):
        self.completed = []
        self.rejected = []

    def on_workflow_complete(self, entity_type, entity_id):
        self.completed.append((entity_type, entity_id))

    def on_workflow_rejected(self, entity_type, entity_id, reason):
        self.rejected.append((entity_type, entity_id, reason))


def run_in_session(session_factory, fn):
    """Run fn(session) in its own transaction; commit on success."""
    session = session_factory()
    try:
        result = fn(session)
        session.commit()
        return result
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def race(fn, num_threads=NUM_THREADS):
    """Run fn(thread_index) on num_threads threads released together.

    Returns one ("ok", value) or ("error", exception) tuple per thread.
    """
    barrier = Barrier(num_threads, timeout=30)

    def worker(index):
        barrier.wait()
        try:
            return ("ok", fn(index))
        except Exception as exc:
            return ("error", exc)

    with ThreadPoolExecutor(max_workers=num_threads) as pool:
        return list(pool.map(worker, range(num_threads)))


@pytest.fixture
def single_step_chain(session_factory, deterministic_clock):
    """Commit a one-level MANAGER chain for po-1 and NUM_THREADS managers."""

    def _setup(session):
        roles = SqlRoleDirectory(session)
        for i in range(NUM_THREADS):
            roles.assign_role(TENANT, f"mgr-{i}", "MANAGER")
        workflow = ApprovalWorkflowService(session, clock=deterministic_clock)
        workflow.policies.create_policy(
            TENANT, "Purchase", "PURCHASE_REQUEST", [(1, "MANAGER")],
        )
        return workflow.submit(
            TENANT, "PURCHASE_REQUEST", "100", "PURCHASE_REQUEST", "po-1",
        ).steps[0]

    return run_in_session(session_factory, _setup)


class TestConcurrentStepActions:

    def test_concurrent_approvals_exactly_one_wins(
        self, session_factory, single_step_chain, deterministic_clock,
    ):
        step = single_step_chain
        listener = CompletionLog()

        def approve(index):
            return run_in_session(
                session_factory,
                lambda s: ApprovalWorkflowService(
                    s, listener=listener, clock=deterministic_clock,
                ).approve(TENANT, step.step_id, f"mgr-{index}"),
            )

        results = race(approve)

        winners = [value for kind, value in results if kind == "ok"]
        losers = [value for kind, value in results if kind == "error"]
        assert len(winners) == 1
        assert len(losers) == NUM_THREADS - 1
        assert all(isinstance(exc, StepNotPendingError) for exc in losers)
        assert listener.completed == [("PURCHASE_REQUEST", "po-1")]

        chain = run_in_session(
            session_factory,
            lambda s: ApprovalWorkflowService(s).get_chain(TENANT, "PURCHASE_REQUEST", "po-1"),
        )
        assert chain[0].status == StepStatus.APPROVED
        assert chain[0].approver_id == winners[0].acting_as_user_id

    def test_approve_and_reject_race(
        self, session_factory, single_step_chain, deterministic_clock,
    ):
        step = single_step_chain

        def act(index):
            def _act(s):
                workflow = ApprovalWorkflowService(s, clock=deterministic_clock)
                if index % 2:
                    return workflow.reject(TENANT, step.step_id, f"mgr-{index}", "over budget")
                return workflow.approve(TENANT, step.step_id, f"mgr-{index}")

            return run_in_session(session_factory, _act)

        results = race(act)

        winners = [value for kind, value in results if kind == "ok"]
        assert len(winners) == 1
        assert all(
            isinstance(value, StepNotPendingError)
            for kind, value in results if kind == "error"
        )

        chain = run_in_session(
            session_factory,
            lambda s: ApprovalWorkflowService(s).get_chain(TENANT, "PURCHASE_REQUEST", "po-1"),
        )
        assert chain[0].status == winners[0].step.status


class TestConcurrentSubmission:

    def test_duplicate_submissions_create_one_chain(self, session_factory, deterministic_clock):
        run_in_session(
            session_factory,
            lambda s: ApprovalWorkflowService(s, clock=deterministic_clock).policies.create_policy(
                TENANT, "Leave", "LEAVE_REQUEST", [(1, "MANAGER"), (2, "HR_MANAGER")],
            ),
        )

        def submit(index):
            return run_in_session(
                session_factory,
                lambda s: ApprovalWorkflowService(s, clock=deterministic_clock).submit(
                    TENANT, "LEAVE_REQUEST", None, "LEAVE_REQUEST", "leave-1",
                ),
            )

        results = race(submit)

        assert sum(1 for kind, _ in results if kind == "ok") == 1
        assert all(
            isinstance(value, WorkflowAlreadyExistsError)
            for kind, value in results if kind == "error"
        )

        chain = run_in_session(
            session_factory,
            lambda s: ApprovalWorkflowService(s).get_chain(TENANT, "LEAVE_REQUEST", "leave-1"),
        )
        assert [s.level_order for s in chain] == [1, 2]


class TestConcurrentDelegation:

    def test_overlapping_creates_leave_one_active_window(
        self, session_factory, deterministic_clock,
    ):
        start = deterministic_clock.now()

        def create(index):
            # every window covers day 3, each with its own delegatee
            return run_in_session(
                session_factory,
                lambda s: ApprovalWorkflowService(s, clock=deterministic_clock).create_delegation(
                    TENANT,
                    "mgr-0",
                    f"backup-{index}",
                    start + timedelta(days=index % 3),
                    start + timedelta(days=3 + index),
                ),
            )

        results = race(create)

        winners = [value for kind, value in results if kind == "ok"]
        losers = [value for kind, value in results if kind == "error"]
        assert len(winners) == 1
        assert len(losers) == NUM_THREADS - 1
        assert all(isinstance(exc, OverlappingDelegationError) for exc in losers)

        active = run_in_session(
            session_factory,
            lambda s: ApprovalWorkflowService(s).list_delegations(
                TENANT, delegator_id="mgr-0", active_only=True,
            ),
        )
        assert [d.delegation_id for d in active] == [winners[0].delegation_id]

    def test_different_delegators_do_not_block_each_other(
        self, session_factory, deterministic_clock,
    ):
        start = deterministic_clock.now()

        def create(index):
            return run_in_session(
                session_factory,
                lambda s: ApprovalWorkflowService(s, clock=deterministic_clock).create_delegation(
                    TENANT, f"mgr-{index}", "backup-1" if index else "backup-2",
                    start, start + timedelta(days=5),
                ),
            )

        results = race(create)

        assert all(kind == "ok" for kind, _ in results)
        active = run_in_session(
            session_factory,
            lambda s: ApprovalWorkflowService(s).list_delegations(TENANT, active_only=True),
        )
        assert len(active) == NUM_THREADS
