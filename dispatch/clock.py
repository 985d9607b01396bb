"""
Purpose: Time source + delayed-callback scheduling for the offer protocol.
What it does:
SystemClock is the production implementation (wall clock + threading.Timer).
Anything that needs "now" or "call me back in N seconds" takes a clock so
tests can drive time by hand instead of sleeping.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay_seconds, callback)
        # pending offers must not keep the process alive on shutdown
        timer.daemon = True
        timer.start()
        return timer
