"""
Injectable time source.

``FormVersionService`` stamps ``published_at`` from a Clock so tests can pin
time; nothing in the kernel reads the wall clock directly.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Always reports the same instant."""

    def __init__(self, fixed_time: datetime = DEFAULT_TEST_TIME):
        self.fixed_time = fixed_time

    def now(self) -> datetime:
        return self.fixed_time
