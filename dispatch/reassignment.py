"""
Purpose: Reassignment coordinator (rejection / timeout -> next helper).
What it does:
Closes the live offer on a booking, frees the helper, and either gives up
(rejection ceiling passed) or runs the assignment engine again. The engine
excludes everyone already in the booking's history, so a helper is never
offered the same booking twice. A successful reassignment re-arms the
response-timeout supervisor for the new helper.
"""

from __future__ import annotations

import logging
from typing import Optional

from bookings.catalog import UnknownService
from bookings.models import AssignmentOutcome, BookingStatus

from .dispatcher import AssignmentEngine, AssignmentResult, NoCandidateError
from .notifications import (
    BookingFailed,
    BookingOffered,
    BookingTimedOut,
    HelperAssigned,
    HelperReassigned,
    ReassignmentFailed,
    SafeNotifier,
)
from .policy import DispatchPolicy
from .state_machines.booking_state import mark_exhausted, record_rejection
from .timeouts import ResponseTimeoutSupervisor

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "no response within timeout"


class DispatchExhausted(Exception):
    """Raised when a booking passes the rejection ceiling and is abandoned."""

    def __init__(self, booking_id: str, rejection_count: int):
        super().__init__(
            f"Booking {booking_id} abandoned after {rejection_count} rejections: no helper available"
        )
        self.booking_id = booking_id
        self.rejection_count = rejection_count


class ReassignmentCoordinator:
    def __init__(
        self,
        engine: AssignmentEngine,
        supervisor: ResponseTimeoutSupervisor,
        notifier: Optional[SafeNotifier] = None,
        policy: Optional[DispatchPolicy] = None,
    ):
        self.engine = engine
        self.supervisor = supervisor
        self.notifier = notifier or SafeNotifier()
        self.policy = policy or engine.policy

        supervisor.set_expiry_handler(self.handle_timeout)

    @property
    def store(self):
        return self.engine.store

    @property
    def registry(self):
        return self.engine.registry

    def handle_rejection(
        self,
        booking_id: str,
        helper_id: str,
        reason: str,
        outcome: AssignmentOutcome = AssignmentOutcome.REJECTED,
    ) -> AssignmentResult:
        """
        helper_id turned the booking down (or let the offer lapse).

        Returns the new assignment, or raises:
        - DispatchExhausted: ceiling passed, booking is now no-helper-available
        - NoCandidateError / UnknownService: nobody else to offer it to right
          now, booking is left pending for an out-of-band retry
        """
        with self.store.lock(booking_id):
            booking = self.store.load(booking_id)

            # 1. Close the live offer (raises if helper_id no longer holds it)
            record_rejection(booking, helper_id, reason, self.engine.clock.now(), outcome)
            self.supervisor.cancel(booking_id)

            exhausted = booking.rejection_count > self.policy.max_rejections
            if exhausted:
                mark_exhausted(booking)
            self.store.save(booking)

            # 2. Free the helper
            self.registry.release(helper_id, booking_id)
            logger.info(
                "Booking %s: helper %s %s (%s), rejection count %d",
                booking_id, helper_id, outcome.value, reason, booking.rejection_count,
            )

            # 3. Ceiling passed -> terminal
            if exhausted:
                logger.info("Booking %s: max rejections reached, marked %s", booking_id, booking.status.value)
                self.notifier.requester(
                    booking.requester_id,
                    BookingFailed(booking_id=booking_id, rejection_count=booking.rejection_count),
                )
                raise DispatchExhausted(booking_id, booking.rejection_count)

            # 4. Next best helper (history-derived exclusion happens in the engine)
            try:
                result = self.engine.assign(booking_id, booking.location, booking.skill)
            except (NoCandidateError, UnknownService) as exc:
                logger.info("Booking %s: reassignment failed, left pending: %s", booking_id, exc)
                self.notifier.requester(booking.requester_id, ReassignmentFailed(booking_id=booking_id))
                raise

            # 5. New response window
            self.supervisor.arm(booking_id, result.helper_id)

        self.notify_offer(result, reassigned=True)
        return result

    def handle_timeout(self, booking_id: str, helper_id: str) -> Optional[AssignmentResult]:
        """
        Expiry handler for the supervisor: an unanswered offer is an implicit
        rejection. Outcomes that end the search are reported through
        notifications only, since there is no caller waiting on a timer.
        """
        with self.store.lock(booking_id):
            booking = self.store.load(booking_id)
            if booking.status != BookingStatus.ASSIGNED or booking.helper_id != helper_id:
                return None

            self.notifier.helper(helper_id, BookingTimedOut(booking_id=booking_id))
            try:
                return self.handle_rejection(booking_id, helper_id, TIMEOUT_REASON, AssignmentOutcome.TIMEOUT)
            except (DispatchExhausted, NoCandidateError, UnknownService) as exc:
                logger.info("Booking %s after timeout: %s", booking_id, exc)
                return None

    def notify_offer(self, result: AssignmentResult, reassigned: bool = False) -> None:
        booking = result.booking
        assigned = result.assigned

        self.notifier.helper(
            assigned.helper_id,
            BookingOffered(
                booking_id=booking.id,
                skill=booking.skill,
                location=booking.location,
                distance_km=assigned.distance_km,
                eta_minutes=assigned.eta_minutes,
                respond_within_seconds=self.policy.response_timeout_seconds,
            ),
        )

        event_type = HelperReassigned if reassigned else HelperAssigned
        self.notifier.requester(
            booking.requester_id,
            event_type(
                booking_id=booking.id,
                helper_id=assigned.helper_id,
                helper_name=assigned.name,
                rating=assigned.rating,
                distance_km=assigned.distance_km,
                eta_minutes=assigned.eta_minutes,
            ),
        )
