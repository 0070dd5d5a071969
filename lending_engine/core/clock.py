"""Time sources used to timestamp pool operations."""

from datetime import datetime, timezone
import threading

from ..models.interfaces import Clock


class SystemClock(Clock):
    """Wall clock returning UTC epoch seconds."""

    def now(self) -> int:
        """Return current UTC epoch seconds."""
        return int(datetime.now(timezone.utc).timestamp())


class ManualClock(Clock):
    """Deterministic clock advanced explicitly by tests and scenarios."""

    def __init__(self, start: int = 1_600_000_000) -> None:
        self._now = int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: int) -> int:
        """Move time forward and return the new timestamp."""
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        with self._lock:
            self._now += int(seconds)
            return self._now

    def set(self, timestamp: int) -> None:
        with self._lock:
            if timestamp < self._now:
                raise ValueError("Clock cannot move backwards")
            self._now = int(timestamp)
