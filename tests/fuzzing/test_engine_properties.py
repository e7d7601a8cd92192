"""
Hypothesis-based property tests for the pure approval engines.

Properties checked:
- select_policy() is order independent and always returns a matching
  candidate with minimal precedence
- windows_overlap() is symmetric and agrees with a shared-instant witness
- validate_window() accepts exactly the aware, ordered, capped windows
- chain progress never reports a current step behind an open level
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from hypothesis import given, settings
from hypothesis import strategies as st

from approval_engines.chain_progress import current_step, next_pending_after, summarize_chain
from approval_engines.delegation_windows import validate_window, windows_overlap
from approval_engines.policy_matching import policy_matches, precedence_key, select_policy
from approval_kernel.domain.approval import (
    ApprovalPolicy,
    ApprovalStep,
    ChainStatus,
    StepStatus,
)

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)

amounts = st.one_of(
    st.none(),
    st.decimals(min_value=Decimal("0"), max_value=Decimal("100000"), places=2),
)


@st.composite
def policies(draw, index):
    low = draw(amounts)
    high = draw(amounts)
    if low is not None and high is not None and low > high:
        low, high = high, low
    return ApprovalPolicy(
        policy_id=UUID(int=index + 1),
        tenant_id="t",
        name=f"p{index}",
        module=draw(st.sampled_from(["LEAVE_REQUEST", "PURCHASE_REQUEST"])),
        priority=draw(st.integers(min_value=1, max_value=5)),
        is_active=draw(st.booleans()),
        min_amount=low,
        max_amount=high,
        created_at=BASE + timedelta(seconds=draw(st.integers(min_value=0, max_value=3))),
    )


@st.composite
def policy_sets(draw):
    size = draw(st.integers(min_value=0, max_value=8))
    return [draw(policies(i)) for i in range(size)]


offsets = st.integers(min_value=-1000, max_value=1000)


class TestPolicySelectionProperties:

    @settings(max_examples=200)
    @given(candidates=policy_sets(), amount=amounts, data=st.data())
    def test_order_independent_and_minimal(self, candidates, amount, data):
        shuffled = data.draw(st.permutations(candidates))
        chosen = select_policy(candidates, "PURCHASE_REQUEST", amount)

        assert select_policy(shuffled, "PURCHASE_REQUEST", amount) == chosen

        matching = [p for p in candidates if policy_matches(p, "PURCHASE_REQUEST", amount)]
        if not matching:
            assert chosen is None
        else:
            assert chosen in matching
            assert all(precedence_key(chosen) <= precedence_key(p) for p in matching)


class TestWindowProperties:

    @given(a=offsets, b=offsets, c=offsets, d=offsets)
    def test_overlap_symmetric_with_witness(self, a, b, c, d):
        s1, e1 = sorted((a, b))
        s2, e2 = sorted((c, d))
        t = lambda n: BASE + timedelta(hours=n)  # noqa: E731

        overlap = windows_overlap(t(s1), t(e1), t(s2), t(e2))
        assert overlap == windows_overlap(t(s2), t(e2), t(s1), t(e1))
        # closed integer intervals share an instant iff max(start) <= min(end)
        assert overlap == (max(s1, s2) <= min(e1, e2))

    @given(start=offsets, length=st.integers(min_value=-10, max_value=200),
           cap=st.one_of(st.none(), st.integers(min_value=1, max_value=100)))
    def test_validate_window(self, start, length, cap):
        begin = BASE + timedelta(days=start)
        end = begin + timedelta(days=length)
        problem = validate_window(begin, end, cap)

        expected_ok = length >= 0 and (cap is None or length <= cap)
        assert (problem is None) == expected_ok


@st.composite
def chains(draw):
    size = draw(st.integers(min_value=1, max_value=6))
    statuses = draw(st.lists(st.sampled_from(list(StepStatus)), min_size=size, max_size=size))
    return [
        ApprovalStep(
            step_id=UUID(int=i + 1),
            tenant_id="t",
            entity_type="LEAVE_REQUEST",
            entity_id="e",
            level_order=i + 1,
            required_role="R",
            status=status,
        )
        for i, status in enumerate(statuses)
    ]


class TestChainProgressProperties:

    @given(chain=chains())
    def test_current_step_is_lowest_pending(self, chain):
        current = current_step(chain)
        pending = [s.level_order for s in chain if s.status == StepStatus.PENDING]
        if not pending:
            assert current is None
        else:
            assert current.level_order == min(pending)

    @given(chain=chains(), level=st.integers(min_value=0, max_value=7))
    def test_next_pending_is_above_level(self, chain, level):
        nxt = next_pending_after(chain, level)
        later = [
            s.level_order for s in chain
            if s.status == StepStatus.PENDING and s.level_order > level
        ]
        assert (nxt.level_order if nxt else None) == (min(later) if later else None)

    @given(chain=chains())
    def test_summary_counts(self, chain):
        summary = summarize_chain(chain)
        assert summary.total_steps == len(chain)
        assert 0 <= summary.completed_steps <= summary.total_steps
        if any(s.status == StepStatus.REJECTED for s in chain):
            assert summary.status == ChainStatus.REJECTED
        elif summary.status == ChainStatus.APPROVED:
            assert summary.current_level is None
