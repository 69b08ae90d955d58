"""
Progress reporting for the applier.

The applier announces the total task count, one completion per task, and
the end of the run. Tasks finish concurrently, so reporters must be
thread-safe.
"""

import logging
import threading
from typing import Protocol

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    """Receives start/done/finish notifications from the applier."""

    def start(self, total: int) -> None:
        ...

    def done(self) -> None:
        ...

    def finish(self) -> None:
        ...


class ProgressCounter:
    """Thread-safe completed/total counter. Every read takes the lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0
        self._completed = 0

    def start(self, total: int) -> None:
        with self._lock:
            self._total = total
            self._completed = 0

    def done(self) -> tuple[int, int]:
        """Record one completed task and return (completed, total)."""
        with self._lock:
            self._completed += 1
            return self._completed, self._total

    def snapshot(self) -> tuple[int, int]:
        """Return a consistent (completed, total) pair."""
        with self._lock:
            return self._completed, self._total

    @property
    def total(self) -> int:
        return self.snapshot()[1]

    @property
    def completed(self) -> int:
        return self.snapshot()[0]

    @property
    def remaining(self) -> int:
        completed, total = self.snapshot()
        return total - completed


class LoggingProgress:
    """Reports progress through the logging module."""

    def __init__(self):
        self._counter = ProgressCounter()

    def start(self, total: int) -> None:
        self._counter.start(total)
        logger.info(f"Applying {total} changes...")

    def done(self) -> None:
        completed, total = self._counter.done()
        logger.info(f"Progress: {completed}/{total}")

    def finish(self) -> None:
        completed, total = self._counter.snapshot()
        logger.info(f"Applied {completed}/{total} changes")


class NullProgress:
    """Discards all notifications."""

    def start(self, total: int) -> None:
        pass

    def done(self) -> None:
        pass

    def finish(self) -> None:
        pass
