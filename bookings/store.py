"""
Purpose: Booking persistence + the per-booking locking discipline.
What it does:
- load / save bookings by id (copies in and out, so a caller only changes
  stored state by calling save)
- lock(booking_id): a re-entrant mutual-exclusion scope per booking. Accept,
  reject and timeout handling all run inside it, so for one booking they are
  strictly serialised while different bookings proceed in parallel.

Rule: the store owns storage and locks, never status transitions.
"""

from __future__ import annotations

import copy
import threading
from typing import Dict, List

from .models import Booking


class BookingNotFound(LookupError):
    """Raised when a booking id is unknown to the store."""
    pass


class InMemoryBookingStore:
    def __init__(self):
        self._bookings: Dict[str, Booking] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._index_lock = threading.Lock()

    def add(self, booking: Booking) -> Booking:
        """
        Insert a new booking (booking intake). Adding an id twice keeps the
        first copy.
        """
        with self._index_lock:
            if booking.id not in self._bookings:
                self._bookings[booking.id] = copy.deepcopy(booking)
                self._locks[booking.id] = threading.RLock()
            return copy.deepcopy(self._bookings[booking.id])

    def load(self, booking_id: str) -> Booking:
        try:
            return copy.deepcopy(self._bookings[booking_id])
        except KeyError:
            raise BookingNotFound(f"Booking {booking_id} not found") from None

    def save(self, booking: Booking) -> None:
        with self._index_lock:
            if booking.id not in self._bookings:
                raise BookingNotFound(f"Booking {booking.id} not found")
            self._bookings[booking.id] = copy.deepcopy(booking)

    def lock(self, booking_id: str) -> threading.RLock:
        """
        Usage:
            with store.lock(booking_id):
                booking = store.load(booking_id)
                ...
                store.save(booking)
        """
        try:
            return self._locks[booking_id]
        except KeyError:
            raise BookingNotFound(f"Booking {booking_id} not found") from None

    def all(self) -> List[Booking]:
        with self._index_lock:
            return [copy.deepcopy(booking) for booking in self._bookings.values()]
