"""
Injectable time source for the host services.

Services stamp submissions, decisions and flow versions through a
``Clock`` so tests can pin time.  The engine never reads a clock; it is
handed ``decided_at`` by its caller.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_DEFAULT_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self._current = start or _DEFAULT_EPOCH

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> datetime:
        self._current += timedelta(seconds=seconds)
        return self._current

    def set_time(self, when: datetime) -> None:
        self._current = when
