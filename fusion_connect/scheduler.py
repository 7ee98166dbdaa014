"""
Delayed callbacks used by the call session tracker.
"""

from __future__ import annotations

import threading
from typing import Callable, Protocol


class ScheduledCall(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[[], None]) -> ScheduledCall:
        ...


class ThreadingScheduler:
    """Runs each callback on a daemon `threading.Timer`."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        timer.start()
        return timer
