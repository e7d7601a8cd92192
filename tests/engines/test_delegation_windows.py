"""Tests for approval_engines.delegation_windows."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from approval_engines.delegation_windows import (
    find_overlapping,
    is_effective,
    validate_window,
    window_contains,
    windows_overlap,
)
from approval_kernel.domain.approval import ApproverDelegation

D1 = datetime(2024, 6, 1, tzinfo=timezone.utc)


def day(n: int) -> datetime:
    return D1 + timedelta(days=n - 1)


def make_delegation(start, end, *, is_active=True):
    return ApproverDelegation(
        delegation_id=uuid4(),
        tenant_id="tenant-a",
        delegator_id="mgr-1",
        delegatee_id="backup-1",
        start_date=start,
        end_date=end,
        is_active=is_active,
    )


class TestOverlap:

    def test_touching_windows_overlap(self):
        assert windows_overlap(day(1), day(5), day(5), day(9))

    def test_disjoint_windows(self):
        assert not windows_overlap(day(1), day(4), day(5), day(9))

    def test_containment_overlaps(self):
        assert windows_overlap(day(1), day(10), day(3), day(4))


class TestContains:

    def test_closed_interval(self):
        assert window_contains(day(1), day(3), day(1))
        assert window_contains(day(1), day(3), day(3))
        assert not window_contains(day(1), day(3), day(3) + timedelta(seconds=1))


class TestValidateWindow:

    def test_valid_window(self):
        assert validate_window(day(1), day(10), max_days=90) is None

    def test_inverted_window(self):
        assert validate_window(day(5), day(1)) == "start date is after end date"

    def test_naive_dates_rejected(self):
        naive = datetime(2024, 6, 1)
        assert "timezone" in validate_window(naive, naive)

    def test_max_days_enforced(self):
        assert validate_window(day(1), day(1) + timedelta(days=90), max_days=90) is None
        reason = validate_window(day(1), day(1) + timedelta(days=91), max_days=90)
        assert "90 days" in reason

    def test_max_days_disabled(self):
        assert validate_window(day(1), day(1) + timedelta(days=400), max_days=None) is None


class TestEffective:

    def test_inside_window(self):
        assert is_effective(make_delegation(day(1), day(5)), day(3))

    def test_expired(self):
        assert not is_effective(make_delegation(day(1), day(5)), day(6))

    def test_not_started(self):
        assert not is_effective(make_delegation(day(2), day(5)), day(1))

    def test_deactivated(self):
        assert not is_effective(make_delegation(day(1), day(5), is_active=False), day(3))


class TestFindOverlapping:

    def test_returns_first_active_overlap(self):
        inactive = make_delegation(day(1), day(10), is_active=False)
        active = make_delegation(day(8), day(12))
        assert find_overlapping([inactive, active], day(9), day(9)) is active

    def test_none_when_clear(self):
        existing = make_delegation(day(1), day(3))
        assert find_overlapping([existing], day(4), day(6)) is None
