"""Injectable clock so plan, obligation and lifecycle code never read wall time"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Source of the current instant"""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC"""
        ...

    def today(self) -> date:
        """Current UTC calendar date"""
        return self.now().date()


class SystemClock(Clock):
    """Production clock, the only reader of system time"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Test clock that returns a controlled instant"""

    def __init__(self, at: datetime | None = None):
        at = at or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self._at = at

    def now(self) -> datetime:
        return self._at

    def set_time(self, at: datetime) -> None:
        self._at = at if at.tzinfo else at.replace(tzinfo=timezone.utc)

    def advance(self, seconds: int = 1) -> None:
        self._at = self._at + timedelta(seconds=seconds)
