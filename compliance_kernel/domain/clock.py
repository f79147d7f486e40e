"""
Clock -- where ledger timestamps come from.

Balance rows carry created_at/updated_at, bank entries and pools carry
created_at.  Services take a Clock so tests can pin those values; FIFO and
pool history order come from sequence numbers, never from these timestamps.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time."""


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen at the start of the 2024 reporting period until moved."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set_time(self, time: datetime) -> None:
        self._now = time

    def advance(self, seconds: int = 1) -> None:
        self._now += timedelta(seconds=seconds)
