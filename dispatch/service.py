"""
Purpose: Booking lifecycle facade (the "one call" entry points).
What it does:
Wires registry, store, catalog, engine, supervisor and coordinator together
and exposes what the outer layers (API handlers, socket events, jobs) call:

create_booking -> offer to best helper, start the response window
accept / reject -> resolve the live offer
start / complete / cancel -> rest of the lifecycle, releasing the helper
set_helper_online -> duty toggle; going offline drops any open offer

Every mutation of a booking happens under that booking's lock, so accept,
reject and timeout for the same offer resolve to exactly one winner.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from bookings.catalog import ServiceCatalog, UnknownService
from bookings.models import Booking, BookingStatus
from bookings.store import InMemoryBookingStore
from helpers.models import Helper
from helpers.registry import HelperRegistry
from routing.eta_service import EtaService
from routing.geo import LatLon, validate_point

from .clock import Clock, SystemClock
from .dispatcher import AssignmentEngine, AssignmentResult, NoCandidateError
from .notifications import (
    BookingAccepted,
    BookingCancelled,
    NoHelperFound,
    NotificationSink,
    SafeNotifier,
)
from .policy import DispatchPolicy, default_dispatch_policy
from .reassignment import DispatchExhausted, ReassignmentCoordinator
from .state_machines.booking_state import (
    mark_accepted,
    mark_cancelled,
    mark_completed,
    mark_in_progress,
)
from .timeouts import ResponseTimeoutSupervisor

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Helper rejected the booking"
OFFLINE_REASON = "helper went offline"


class DispatchService:
    def __init__(
        self,
        registry: HelperRegistry,
        catalog: ServiceCatalog,
        store: Optional[InMemoryBookingStore] = None,
        clock: Optional[Clock] = None,
        policy: Optional[DispatchPolicy] = None,
        notification_sink: Optional[NotificationSink] = None,
        eta_service: Optional[EtaService] = None,
    ):
        self.policy = policy or default_dispatch_policy()
        self.clock = clock or SystemClock()
        self.registry = registry
        self.catalog = catalog
        self.store = store or InMemoryBookingStore()
        self.notifier = SafeNotifier(notification_sink)

        self.engine = AssignmentEngine(
            registry, self.store, catalog, clock=self.clock, policy=self.policy, eta_service=eta_service
        )
        self.supervisor = ResponseTimeoutSupervisor(self.store, clock=self.clock, policy=self.policy)
        self.coordinator = ReassignmentCoordinator(self.engine, self.supervisor, self.notifier, self.policy)

    # --- Intake / dispatch ---

    def create_booking(
        self,
        requester_id: str,
        location: LatLon,
        skill: str,
        notes: Optional[str] = None,
    ) -> Tuple[Booking, Optional[AssignmentResult]]:
        """
        Store a new pending booking and immediately try to dispatch it.

        Raises InvalidInput / UnknownService before anything is stored. If
        nobody is free nearby the booking is still created and stays pending.
        """
        location = validate_point(location)
        self.catalog.resolve_service(skill)

        booking = self.store.add(Booking.new(requester_id, location, skill, notes))
        logger.info("Created booking %s for requester %s (%s)", booking.id, requester_id, skill)

        result = self._dispatch(booking)
        return self.store.load(booking.id), result

    def retry_dispatch(self, booking_id: str) -> Optional[AssignmentResult]:
        """
        Out-of-band retry for a booking left pending after a failed search.
        """
        return self._dispatch(self.store.load(booking_id))

    def _dispatch(self, booking: Booking) -> Optional[AssignmentResult]:
        try:
            with self.store.lock(booking.id):
                result = self.engine.assign(booking.id)
                self.supervisor.arm(booking.id, result.helper_id)
        except NoCandidateError as exc:
            logger.info("Booking %s stays pending: %s", booking.id, exc)
            self.notifier.requester(booking.requester_id, NoHelperFound(booking_id=booking.id))
            return None

        self.coordinator.notify_offer(result)
        return result

    # --- Offer resolution ---

    def accept(self, booking_id: str, helper_id: str) -> bool:
        """
        Race resolver for "Accept" taps. Returns False if the offer is no
        longer open to this helper (timed out, reassigned, cancelled).
        """
        with self.store.lock(booking_id):
            booking = self.store.load(booking_id)
            if booking.status != BookingStatus.ASSIGNED or booking.helper_id != helper_id:
                logger.info("Helper %s was too late to accept booking %s (%s)", helper_id, booking_id, booking.status.value)
                return False

            mark_accepted(booking, helper_id, self.clock.now())
            self.store.save(booking)
            self.supervisor.cancel(booking_id)

        logger.info("Helper %s accepted booking %s", helper_id, booking_id)
        self.notifier.requester(booking.requester_id, BookingAccepted(booking_id=booking_id, helper_id=helper_id))
        return True

    def reject(self, booking_id: str, helper_id: str, reason: Optional[str] = None) -> AssignmentResult:
        """
        Explicit rejection by the offered helper. See
        ReassignmentCoordinator.handle_rejection for outcomes.
        """
        return self.coordinator.handle_rejection(booking_id, helper_id, reason or DEFAULT_REJECTION_REASON)

    # --- Rest of the lifecycle ---

    def start(self, booking_id: str, helper_id: str) -> Booking:
        with self.store.lock(booking_id):
            booking = self.store.load(booking_id)
            mark_in_progress(booking, helper_id)
            self.store.save(booking)
        return booking

    def complete(self, booking_id: str, helper_id: str) -> Booking:
        with self.store.lock(booking_id):
            booking = self.store.load(booking_id)
            mark_completed(booking, helper_id, self.clock.now())
            self.store.save(booking)
            self.registry.record_completion(helper_id, booking_id)

        logger.info("Booking %s completed by helper %s", booking_id, helper_id)
        return booking

    def cancel(self, booking_id: str) -> Booking:
        with self.store.lock(booking_id):
            booking = self.store.load(booking_id)
            helper_id = mark_cancelled(booking)
            self.store.save(booking)
            self.supervisor.cancel(booking_id)
            if helper_id is not None:
                self.registry.release(helper_id, booking_id)

        logger.info("Booking %s cancelled", booking_id)
        if helper_id is not None:
            self.notifier.helper(helper_id, BookingCancelled(booking_id=booking_id))
        return booking

    # --- Helper side ---

    def set_helper_online(self, helper_id: str, online: bool) -> Helper:
        """
        Duty toggle. Going offline while an offer is still unanswered counts
        as rejecting it; accepted work stays with the helper.
        """
        helper = self.registry.set_online(helper_id, online)
        if online:
            return helper

        for booking_id in helper.active_bookings:
            with self.store.lock(booking_id):
                booking = self.store.load(booking_id)
                if booking.status != BookingStatus.ASSIGNED or booking.helper_id != helper_id:
                    continue
                try:
                    self.coordinator.handle_rejection(booking_id, helper_id, OFFLINE_REASON)
                except (NoCandidateError, UnknownService, DispatchExhausted) as exc:
                    logger.info("Booking %s after helper %s went offline: %s", booking_id, helper_id, exc)

        return self.registry.get(helper_id)

    def update_helper_location(self, helper_id: str, location: LatLon) -> Helper:
        return self.registry.update_location(helper_id, location)

    def nearby_helpers(self, location: LatLon, skills: Optional[List[str]] = None) -> List[Helper]:
        return self.registry.nearby(location, self.policy.search_radius_km, skills, self.policy.nearby_limit)
