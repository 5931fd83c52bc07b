"""
Time source for lifecycle decisions.

Every timestamp the lifecycle writes or compares comes from a Clock so that
retention windows can be exercised deterministically.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """Abstract time source. Returns naive UTC datetimes, matching the DateTime columns."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC).replace(tzinfo=None)


class FrozenClock(Clock):
    """
    Clock that only moves when told to.

    Usage:
        clock = FrozenClock(datetime(2026, 1, 1))
        clock.advance(days=30)
    """

    def __init__(self, at: datetime | None = None):
        self._now = at or SystemClock().now()

    def now(self) -> datetime:
        return self._now

    def set(self, at: datetime) -> None:
        self._now = at

    def advance(self, **kwargs) -> datetime:
        """Move forward by timedelta(**kwargs) and return the new time."""
        self._now = self._now + timedelta(**kwargs)
        return self._now
