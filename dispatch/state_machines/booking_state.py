"""
Booking status transitions driven by the dispatch core.

pending  --assign-->               assigned
assigned --accept-->               accepted
assigned --reject/timeout-->       pending (then re-assigned, or left pending)
pending  --ceiling passed-->       no-helper-available (terminal)
accepted --start-->                in-progress
accepted/in-progress --complete--> completed (terminal)
pending/assigned/accepted --cancel--> cancelled (terminal)

Every function mutates the Booking it is given and must be called while
holding that booking's lock.
"""

from datetime import datetime
from typing import Optional

from bookings.models import AssignmentOutcome, AssignmentRecord, Booking, BookingStatus


class BookingStateException(Exception):
    """Raised when an invalid booking transition is attempted."""
    pass


CANCELLABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.ASSIGNED, BookingStatus.ACCEPTED})


def _require(booking: Booking, *allowed: BookingStatus) -> None:
    if booking.status not in allowed:
        expected = "/".join(status.value for status in allowed)
        raise BookingStateException(
            f"Booking {booking.id} must be {expected}, current: {booking.status.value}"
        )


def _require_helper(booking: Booking, helper_id: str) -> None:
    if booking.helper_id != helper_id:
        raise BookingStateException(f"Helper {helper_id} is not assigned to booking {booking.id}")


def mark_assigned(booking: Booking, helper_id: str, now: datetime, price: Optional[float] = None) -> AssignmentRecord:
    _require(booking, BookingStatus.PENDING)

    record = AssignmentRecord(helper_id=helper_id, assigned_at=now)
    booking.history.append(record)
    booking.status = BookingStatus.ASSIGNED
    booking.helper_id = helper_id
    if price is not None:
        booking.price = price
    return record


def record_rejection(
    booking: Booking,
    helper_id: str,
    reason: str,
    now: datetime,
    outcome: AssignmentOutcome = AssignmentOutcome.REJECTED,
) -> AssignmentRecord:
    """
    Close the live offer to helper_id as rejected/timed out and put the
    booking back to pending with no helper.
    """
    _require(booking, BookingStatus.ASSIGNED)
    _require_helper(booking, helper_id)

    record = booking.live_assignment()
    if record is None or record.helper_id != helper_id:
        raise BookingStateException(f"Booking {booking.id} has no live offer to helper {helper_id}")

    record.outcome = outcome
    record.rejected_at = now
    record.reason = reason

    booking.rejection_count += 1
    booking.status = BookingStatus.PENDING
    booking.helper_id = None
    return record


def mark_exhausted(booking: Booking) -> Booking:
    _require(booking, BookingStatus.PENDING)
    booking.status = BookingStatus.NO_HELPER_AVAILABLE
    booking.helper_id = None
    return booking


def mark_accepted(booking: Booking, helper_id: str, now: datetime) -> Booking:
    _require(booking, BookingStatus.ASSIGNED)
    _require_helper(booking, helper_id)
    booking.status = BookingStatus.ACCEPTED
    booking.accepted_at = now
    return booking


def mark_in_progress(booking: Booking, helper_id: str) -> Booking:
    _require(booking, BookingStatus.ACCEPTED)
    _require_helper(booking, helper_id)
    booking.status = BookingStatus.IN_PROGRESS
    return booking


def mark_completed(booking: Booking, helper_id: str, now: datetime) -> Booking:
    _require(booking, BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS)
    _require_helper(booking, helper_id)
    booking.status = BookingStatus.COMPLETED
    booking.completed_at = now
    return booking


def mark_cancelled(booking: Booking) -> Optional[str]:
    """
    Returns the helper that was holding the booking (to be released), if any.
    """
    if booking.status not in CANCELLABLE_STATUSES:
        raise BookingStateException(f"Cannot cancel booking {booking.id} from {booking.status.value}")

    released = booking.helper_id
    booking.status = BookingStatus.CANCELLED
    return released
