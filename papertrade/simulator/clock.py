"""Wall and virtual clocks for the simulator."""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


class Clock(ABC):
    """Source of the current time for trade timestamps and id generation."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time (timezone-aware, UTC)."""
        pass

    def epoch_ms(self) -> int:
        """Current time as unix milliseconds."""
        return int(self.now().timestamp() * 1000)


class SystemClock(Clock):
    """Real wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class VirtualClock(Clock):
    """
    Manually advanced clock for tests and offline sessions.

    Time never moves backwards.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> datetime:
        """Move the clock forward by ``seconds``."""
        if seconds < 0:
            raise ValueError("cannot advance a clock by a negative amount")
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds)
            return self._now

    def set(self, moment: datetime) -> None:
        """Jump to ``moment`` if it is not in the past."""
        with self._lock:
            if moment > self._now:
                self._now = moment
