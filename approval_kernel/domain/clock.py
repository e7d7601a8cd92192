"""
Injectable time source for the approval engine.

Services read the current instant through a ``Clock`` so that step
``action_at`` stamps, delegation ``created_at`` / ``deactivated_at`` and the
"is this delegation effective now" check all come from one place.  Tests
swap in ``DeterministicClock`` and move time explicitly to walk a
delegation through its window.

Every instant a clock returns is timezone-aware UTC; naive datetimes are
refused so they can never reach the ``UTCDateTime`` columns.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_SECONDS_PER_DAY = 86400


class Clock(ABC):
    """Source of the current UTC instant."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance()``,
    ``advance_days()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = _require_aware(
            fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        )

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _require_aware(time)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        """Jump whole days, e.g. past the end of a delegation window."""
        self.advance(days * _SECONDS_PER_DAY)


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("Clock instants must be timezone-aware")
    return value.astimezone(timezone.utc)
