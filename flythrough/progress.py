"""
Progress sinks for capture runs.

The worker pushes ``(percent, message)`` events into a sink; which thread
finally consumes them is up to the sink. A GUI would use
QueueProgressSink and drain it from its own event loop.
"""

import queue
import threading
import logging
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from flythrough.logging_config import get_logger

logger = get_logger(__name__)

ProgressEvent = Tuple[int, str]


def percent_of(completed: int, total: int) -> int:
    """Integer percentage of ``completed`` out of ``total``, clamped to 0..100."""
    if total <= 0:
        return 0
    return max(0, min(100, 100 * completed // total))


class ProgressSink(Protocol):
    """Receives progress updates from a run."""

    def report(self, percent: int, message: str) -> None:
        ...


class NullProgressSink:
    """Discards progress."""

    def report(self, percent: int, message: str) -> None:
        pass


class CallbackProgressSink:
    """Calls ``callback(percent, message)`` on the worker thread."""

    def __init__(self, callback: Callable[[int, str], None]):
        self.callback = callback

    def report(self, percent: int, message: str) -> None:
        self.callback(percent, message)


class LoggingProgressSink:
    """Logs progress messages, skipping the empty terminal reset."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def report(self, percent: int, message: str) -> None:
        if message:
            logger.log(self.level, "[%3d%%] %s", percent, message)


class QueueProgressSink:
    """Thread-safe hand-off of progress events to the thread that owns the UI."""

    def __init__(self, maxsize: int = 0):
        self.events: "queue.Queue[ProgressEvent]" = queue.Queue(maxsize=maxsize)

    def report(self, percent: int, message: str) -> None:
        self.events.put((percent, message))

    def drain(self) -> List[ProgressEvent]:
        """Return every pending event without blocking."""
        drained = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained

    def latest(self) -> Optional[ProgressEvent]:
        """Drain the queue and return only the newest event, if any."""
        drained = self.drain()
        return drained[-1] if drained else None


class RecordingProgressSink:
    """Keeps every event in memory, in order."""

    def __init__(self):
        self.events: List[ProgressEvent] = []
        self._lock = threading.Lock()

    def report(self, percent: int, message: str) -> None:
        with self._lock:
            self.events.append((percent, message))

    @property
    def percents(self) -> List[int]:
        return [p for p, _ in self.events]

    @property
    def messages(self) -> List[str]:
        return [m for _, m in self.events]


class CompositeProgressSink:
    """Forwards each event to several sinks."""

    def __init__(self, sinks: Sequence[ProgressSink]):
        self.sinks = list(sinks)

    def report(self, percent: int, message: str) -> None:
        for sink in self.sinks:
            sink.report(percent, message)


__all__ = [
    "ProgressEvent",
    "percent_of",
    "ProgressSink",
    "NullProgressSink",
    "CallbackProgressSink",
    "LoggingProgressSink",
    "QueueProgressSink",
    "RecordingProgressSink",
    "CompositeProgressSink",
]
