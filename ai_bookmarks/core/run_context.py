"""
Cancellation and logging shared by the pipeline driver and the scheduler.
"""

import logging
import threading
from typing import Callable, List, Optional

from .exceptions import CancelledError
from .models import LogEvent, Severity

logger = logging.getLogger(__name__)

LogCallback = Callable[[str, str], None]
ProgressCallback = Callable[[int, int], None]


class CancellationToken:
    """
    Cooperative cancellation flag.

    Checked before every attempt and every wait; a request already in
    flight is never interrupted.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True if cancelled meanwhile"""
        return self._event.wait(seconds)


class RunLog:
    """
    Append-only log of one pipeline run.

    Every event is kept in ``events`` in emission order, written to the
    Python logger and forwarded to the caller's callback.
    """

    def __init__(self, callback: Optional[LogCallback] = None, log: Optional[logging.Logger] = None):
        self.callback = callback
        self.events: List[LogEvent] = []
        self._logger = log or logger

    def emit(self, message: str, severity: Severity = Severity.INFO) -> LogEvent:
        event = LogEvent(message=message, severity=severity)
        self.events.append(event)
        self._logger.log(severity.log_level, message)
        if self.callback is not None:
            self.callback(message, severity.value)
        return event

    def info(self, message: str) -> LogEvent:
        return self.emit(message, Severity.INFO)

    def success(self, message: str) -> LogEvent:
        return self.emit(message, Severity.SUCCESS)

    def warning(self, message: str) -> LogEvent:
        return self.emit(message, Severity.WARNING)

    def error(self, message: str) -> LogEvent:
        return self.emit(message, Severity.ERROR)
