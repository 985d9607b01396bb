"""
Purpose: Response-timeout supervisor for outstanding offers.
What it does:
Keeps at most one live countdown per booking. When a countdown expires it
takes the booking's lock, re-reads the booking and, only if the same helper
still holds an un-answered offer, hands over to the expiry handler (the
reassignment coordinator) as an implicit rejection.

The status check under the booking lock is the real guard. cancel() is best
effort: if a callback is already running it simply finds the booking
accepted (or reassigned) and does nothing.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from bookings.models import BookingStatus
from bookings.store import InMemoryBookingStore

from .clock import Clock, SystemClock, TimerHandle
from .policy import DispatchPolicy, default_dispatch_policy

logger = logging.getLogger(__name__)

# (booking_id, helper_id) -> anything; called with the booking lock held
ExpiryHandler = Callable[[str, str], Any]


@dataclass
class _ArmedTimer:
    helper_id: str
    generation: int
    handle: Optional[TimerHandle] = None


class ResponseTimeoutSupervisor:
    def __init__(
        self,
        store: InMemoryBookingStore,
        clock: Optional[Clock] = None,
        policy: Optional[DispatchPolicy] = None,
        on_expire: Optional[ExpiryHandler] = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.policy = policy or default_dispatch_policy()
        self._on_expire = on_expire

        self._timers: Dict[str, _ArmedTimer] = {}
        self._lock = threading.Lock()
        self._generations = itertools.count(1)

    def set_expiry_handler(self, handler: ExpiryHandler) -> None:
        self._on_expire = handler

    def arm(self, booking_id: str, helper_id: str, duration_seconds: Optional[float] = None) -> None:
        """
        Start the response window for helper_id, replacing any countdown
        already running for this booking.
        """
        duration = self.policy.response_timeout_seconds if duration_seconds is None else duration_seconds

        with self._lock:
            previous = self._timers.pop(booking_id, None)
            if previous is not None and previous.handle is not None:
                previous.handle.cancel()

            armed = _ArmedTimer(helper_id=helper_id, generation=next(self._generations))
            self._timers[booking_id] = armed
            armed.handle = self.clock.call_later(
                duration, lambda: self._fire(booking_id, helper_id, armed.generation)
            )

        logger.info("Started %ss response window for booking %s (helper %s)", duration, booking_id, helper_id)

    def cancel(self, booking_id: str) -> bool:
        """
        Stop the countdown for booking_id. Idempotent and safe from any
        thread; returns True if a countdown was still pending.
        """
        with self._lock:
            armed = self._timers.pop(booking_id, None)
            if armed is None:
                return False
            if armed.handle is not None:
                armed.handle.cancel()

        logger.debug("Cancelled response window for booking %s", booking_id)
        return True

    def is_armed(self, booking_id: str) -> bool:
        with self._lock:
            return booking_id in self._timers

    def armed_helper(self, booking_id: str) -> Optional[str]:
        with self._lock:
            armed = self._timers.get(booking_id)
            return armed.helper_id if armed else None

    def cancel_all(self) -> None:
        with self._lock:
            timers, self._timers = self._timers, {}
        for armed in timers.values():
            if armed.handle is not None:
                armed.handle.cancel()

    def _fire(self, booking_id: str, helper_id: str, generation: int) -> bool:
        """
        Timer callback. Returns True if the offer was treated as expired.
        """
        with self._lock:
            current = self._timers.get(booking_id)
            if current is not None and current.generation == generation:
                del self._timers[booking_id]

        try:
            with self.store.lock(booking_id):
                booking = self.store.load(booking_id)

                live = booking.live_assignment()
                still_waiting = (
                    booking.status == BookingStatus.ASSIGNED
                    and booking.helper_id == helper_id
                    and live is not None
                    and live.helper_id == helper_id
                )
                if not still_waiting:
                    logger.debug(
                        "Response window for booking %s (helper %s) expired after it moved on to %s",
                        booking_id, helper_id, booking.status.value,
                    )
                    return False

                logger.info("Helper %s did not respond to booking %s in time", helper_id, booking_id)
                if self._on_expire is not None:
                    self._on_expire(booking_id, helper_id)
                return True
        except Exception:
            # runs on a timer thread: nobody upstream to propagate to
            logger.exception("Response timeout handling failed for booking %s", booking_id)
            return False
