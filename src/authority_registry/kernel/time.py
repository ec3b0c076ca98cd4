"""
Clocks for stamping audit events

The registry never reads the system clock directly; handlers ask the
injected provider, so a test can pin every occurred_at it asserts on.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class TimeProvider(Protocol):
    def now(self) -> datetime:
        ...


class RealTimeProvider:
    """Wall clock, always timezone-aware UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TestTimeProvider:
    """Frozen clock that only moves when a test advances it"""

    __test__ = False

    def __init__(self, start: datetime) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance_seconds(self, seconds: int) -> None:
        self._now += timedelta(seconds=seconds)
