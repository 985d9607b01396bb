"""
Purpose: Live, in-process registry of helper state.
What it does:
- Holds each helper's latest snapshot (location, availability, skills, rating,
  active bookings)
- Answers proximity + skill queries (bounding-box pre-filter, then haversine)
- Performs atomic availability transitions (reserve / release)

Concurrency:
There is no registry-wide lock on the hot path. Every helper has its own lock
and all check-and-set transitions for that helper happen under it, so two
bookings racing for the same helper get exactly one winner.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Collection, Dict, Iterable, List, Optional

from routing.geo import ROUNDING_MARGIN_KM, LatLon, bounding_box, distance, validate_point

from .models import Helper, normalize_skills
from .selection import filter_eligible_helpers

logger = logging.getLogger(__name__)


class HelperNotFound(LookupError):
    """Raised when a helper id is not registered."""
    pass


class AlreadyReservedError(Exception):
    """Raised by reserve() when the helper is no longer free to take an offer."""

    def __init__(self, helper_id: str, reason: str = "already reserved"):
        super().__init__(f"Helper {helper_id} {reason}")
        self.helper_id = helper_id


class HelperRegistry:
    def __init__(self, helpers: Iterable[Helper] = ()):
        self._helpers: Dict[str, Helper] = {}
        self._locks: Dict[str, threading.Lock] = {}
        # guards membership of the two dicts above, not helper state
        self._index_lock = threading.Lock()

        for helper in helpers:
            self.register(helper)

    # --- Registration / lookup ---

    def register(self, helper: Helper) -> Helper:
        """
        Add a helper. Registering an existing id is a no-op that returns the
        stored snapshot (helpers are never deleted or re-created).
        """
        with self._index_lock:
            existing = self._helpers.get(helper.id)
            if existing is not None:
                return existing
            if helper.active_bookings:
                helper = replace(helper, available=False)
            self._helpers[helper.id] = helper
            self._locks[helper.id] = threading.Lock()
            return helper

    def get(self, helper_id: str) -> Helper:
        try:
            return self._helpers[helper_id]
        except KeyError:
            raise HelperNotFound(f"Helper {helper_id} not found") from None

    def all(self) -> List[Helper]:
        with self._index_lock:
            return list(self._helpers.values())

    def __len__(self) -> int:
        return len(self._helpers)

    def _lock_for(self, helper_id: str) -> threading.Lock:
        try:
            return self._locks[helper_id]
        except KeyError:
            raise HelperNotFound(f"Helper {helper_id} not found") from None

    # --- Queries ---

    def find_candidates(
        self,
        location: LatLon,
        required_skills: Iterable[str],
        radius_km: float,
        exclude: Collection[str] = (),
    ) -> List[Helper]:
        """
        All helpers that are online, available, share at least one of
        required_skills and are within radius_km of location.
        No ordering guarantee.
        """
        location = validate_point(location)
        box = bounding_box(location, radius_km + ROUNDING_MARGIN_KM)
        skills = normalize_skills(required_skills)
        if not skills:
            return []

        return filter_eligible_helpers(
            self.all(),
            location,
            skills,
            radius_km,
            exclude=frozenset(exclude),
            box=box,
        )

    def nearby(
        self,
        location: LatLon,
        radius_km: float,
        skills: Optional[Iterable[str]] = None,
        limit: int = 20,
    ) -> List[Helper]:
        """
        Map-view listing: helpers within radius_km regardless of availability,
        closest first, optionally restricted to any of `skills`.
        """
        location = validate_point(location)
        box = bounding_box(location, radius_km + ROUNDING_MARGIN_KM)
        wanted = normalize_skills(skills) if skills else None

        found = []
        for helper in self.all():
            if wanted is not None and not helper.has_any_skill(wanted):
                continue
            if not box.contains(helper.location):
                continue
            helper_distance = distance(location, helper.location)
            if helper_distance <= radius_km:
                found.append((helper_distance, helper))

        found.sort(key=lambda pair: pair[0])
        return [helper for _, helper in found[:limit]]

    # --- Atomic transitions ---

    def reserve(self, helper_id: str, booking_id: str) -> Helper:
        """
        Check-and-set: mark the helper unavailable and bind booking_id, but
        only if they are currently available and online.
        """
        with self._lock_for(helper_id):
            current = self._helpers[helper_id]
            if not current.available:
                raise AlreadyReservedError(helper_id)
            if not current.online:
                raise AlreadyReservedError(helper_id, "is offline")

            updated = replace(
                current,
                available=False,
                active_bookings=current.active_bookings + (booking_id,),
            )
            self._helpers[helper_id] = updated

        logger.debug("Reserved helper %s for booking %s", helper_id, booking_id)
        return updated

    def release(self, helper_id: str, booking_id: str) -> Helper:
        """
        Unbind booking_id. The helper becomes available again only when no
        other booking is still bound to them. Releasing a booking that is not
        bound is a no-op.
        """
        with self._lock_for(helper_id):
            current = self._helpers[helper_id]
            if booking_id not in current.active_bookings:
                return current

            remaining = tuple(b for b in current.active_bookings if b != booking_id)
            updated = replace(current, active_bookings=remaining, available=not remaining)
            self._helpers[helper_id] = updated

        logger.debug("Released helper %s from booking %s", helper_id, booking_id)
        return updated

    def record_completion(self, helper_id: str, booking_id: str) -> Helper:
        """
        Release the booking and bump the helper's completed counter in one step.
        """
        with self._lock_for(helper_id):
            current = self._helpers[helper_id]
            remaining = tuple(b for b in current.active_bookings if b != booking_id)
            updated = replace(
                current,
                active_bookings=remaining,
                available=not remaining,
                completed_bookings=current.completed_bookings + 1,
            )
            self._helpers[helper_id] = updated
        return updated

    def update_location(self, helper_id: str, location: LatLon) -> Helper:
        location = validate_point(location)
        with self._lock_for(helper_id):
            updated = replace(self._helpers[helper_id], location=location, last_ping_at=datetime.now(timezone.utc))
            self._helpers[helper_id] = updated
        return updated

    def set_online(self, helper_id: str, online: bool) -> Helper:
        with self._lock_for(helper_id):
            updated = replace(self._helpers[helper_id], online=online)
            self._helpers[helper_id] = updated
        logger.info("Helper %s is now %s", helper_id, "online" if online else "offline")
        return updated
