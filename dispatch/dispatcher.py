"""
Purpose: Orchestrator / decision pipeline (the "glue") for one dispatch attempt.
What it does:
Resolves the booking's service, gathers rule-qualified helpers, ranks them,
reserves the best one that is still free and records the offer on the
booking. Returns the reserved helper plus a couple of runners-up for display.

Failure leaves both the booking and the registry exactly as they were:
a reservation that cannot be committed to the booking is released before
the error propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from bookings.catalog import ServiceCatalog, ServiceDefinition
from bookings.models import Booking, BookingStatus
from bookings.store import InMemoryBookingStore
from helpers.models import Helper
from helpers.registry import AlreadyReservedError, HelperRegistry
from routing.eta_service import EtaService
from routing.geo import LatLon, validate_point

from .candidate_filter import build_base_candidates
from .clock import Clock, SystemClock
from .policy import DispatchPolicy, default_dispatch_policy
from .scoring import RankedCandidate, rank_candidates
from .state_machines.booking_state import BookingStateException, mark_assigned

logger = logging.getLogger(__name__)


class NoCandidateError(Exception):
    """Raised when no eligible helper could be reserved for a booking."""

    def __init__(self, booking_id: str, message: str = "No available helpers found with required skills"):
        super().__init__(f"{message} (booking {booking_id})")
        self.booking_id = booking_id


@dataclass(frozen=True)
class CandidateSnapshot:
    """
    What callers get to see about an offered (or runner-up) helper.
    """
    helper_id: str
    name: Optional[str]
    phone: Optional[str]
    rating: float
    distance_km: float
    eta_minutes: int
    skills: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class AssignmentResult:
    booking: Booking
    service: ServiceDefinition
    assigned: CandidateSnapshot
    alternates: List[CandidateSnapshot]

    @property
    def booking_id(self) -> str:
        return self.booking.id

    @property
    def helper_id(self) -> str:
        return self.assigned.helper_id


class AssignmentEngine:
    """
    Runs single dispatch attempts. Safe to call concurrently for different
    bookings; calls for the same booking are serialised by the store's lock.
    """
    def __init__(
        self,
        registry: HelperRegistry,
        store: InMemoryBookingStore,
        catalog: ServiceCatalog,
        clock: Optional[Clock] = None,
        policy: Optional[DispatchPolicy] = None,
        eta_service: Optional[EtaService] = None,
    ):
        self.registry = registry
        self.store = store
        self.catalog = catalog
        self.clock = clock or SystemClock()
        self.policy = policy or default_dispatch_policy()
        self.eta_service = eta_service or EtaService(default_mode=self.policy.default_travel_mode)

    def assign(self, booking_id: str, location: Optional[LatLon] = None, skill: Optional[str] = None) -> AssignmentResult:
        """
        Offer a pending booking to the best free helper.

        location / skill default to the booking's own. Helpers already present
        in the booking's assignment history are never offered it again.

        Raises UnknownService, NoCandidateError (booking left untouched) or
        BookingStateException if the booking is not pending.
        """
        with self.store.lock(booking_id):
            booking = self.store.load(booking_id)
            if booking.status != BookingStatus.PENDING:
                raise BookingStateException(
                    f"Booking {booking_id} must be pending to assign, current: {booking.status.value}"
                )

            location = validate_point(location or booking.location)
            skill = skill or booking.skill

            # 1. Resolve the service being sold
            service = self.catalog.resolve_service(skill)

            # 2. Rule-qualified helpers (excluding anyone already offered this booking)
            candidates = build_base_candidates(
                self.registry,
                location,
                skill,
                service,
                self.policy.search_radius_km,
                already_offered=booking.offered_helper_ids(),
            )
            logger.info(
                "Booking %s: %d eligible helpers within %skm for '%s'",
                booking_id, len(candidates), self.policy.search_radius_km, skill,
            )
            if not candidates:
                raise NoCandidateError(booking_id)

            # 3. Offer sequence
            ranked = rank_candidates(candidates, location, self.policy.similar_distance_km)

            # 4. Reserve the best helper still free; losing a race just moves us down the list
            chosen_index, reserved = self._reserve_first_free(booking_id, ranked)
            if reserved is None:
                raise NoCandidateError(booking_id, "Every eligible helper was reserved by another booking")

            # 5. Snapshot (ETA lookups) and commit the offer, or give the helper back.
            #    Nothing may raise after the save.
            try:
                # runners-up are whoever ranked after the chosen helper; they are not reserved
                runners_up = ranked[chosen_index + 1:chosen_index + 1 + self.policy.runner_up_count]
                assigned = self._snapshot(ranked[chosen_index], location, helper=reserved)
                alternates = [self._snapshot(candidate, location) for candidate in runners_up]

                mark_assigned(booking, reserved.id, self.clock.now(), price=service.base_price)
                self.store.save(booking)
            except Exception:
                self.registry.release(reserved.id, booking_id)
                raise

        logger.info(
            "Booking %s assigned to helper %s (%.2fkm, rating %.1f)",
            booking_id, reserved.id, ranked[chosen_index].distance_km, reserved.rating,
        )

        return AssignmentResult(booking=booking, service=service, assigned=assigned, alternates=alternates)

    def _reserve_first_free(self, booking_id: str, ranked: List[RankedCandidate]):
        for index, candidate in enumerate(ranked):
            try:
                return index, self.registry.reserve(candidate.helper_id, booking_id)
            except AlreadyReservedError as exc:
                logger.debug("Booking %s lost helper %s: %s", booking_id, candidate.helper_id, exc)
        return None, None

    def _snapshot(self, candidate: RankedCandidate, location: LatLon, helper: Optional[Helper] = None) -> CandidateSnapshot:
        helper = helper or candidate.helper
        return CandidateSnapshot(
            helper_id=helper.id,
            name=helper.name,
            phone=helper.phone,
            rating=helper.rating,
            distance_km=candidate.distance_km,
            eta_minutes=self.eta_service.estimate_minutes(helper.location, location, helper.travel_mode),
            skills=helper.skills,
        )
