from datetime import datetime, timezone

import pytest

from bookings.models import AssignmentOutcome, Booking, BookingStatus
from bookings.store import BookingNotFound, InMemoryBookingStore
from dispatch.clock import SystemClock
from dispatch.state_machines.booking_state import (
    BookingStateException,
    mark_accepted,
    mark_assigned,
    mark_cancelled,
    mark_completed,
    mark_exhausted,
    record_rejection,
)

from conftest import DELHI

NOW = datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def booking():
    return Booking.new("req-1", DELHI, "plumbing")


def test_new_booking_defaults(booking):
    assert booking.status == BookingStatus.PENDING
    assert booking.helper_id is None
    assert booking.history == []
    assert booking.rejection_count == 0
    assert booking.live_assignment() is None


def test_timestamps_are_utc(booking):
    assert booking.created_at.tzinfo == timezone.utc
    assert SystemClock().now().tzinfo == timezone.utc


def test_assign_then_reject_returns_to_pending(booking):
    mark_assigned(booking, "h1", NOW, price=299.0)
    assert booking.live_assignment().helper_id == "h1"

    record = record_rejection(booking, "h1", "busy", NOW)

    assert record.outcome == AssignmentOutcome.REJECTED
    assert booking.status == BookingStatus.PENDING
    assert booking.helper_id is None
    assert booking.rejection_count == 1
    assert booking.live_assignment() is None
    assert booking.offered_helper_ids() == ["h1"]


def test_assign_requires_pending(booking):
    mark_assigned(booking, "h1", NOW)

    with pytest.raises(BookingStateException):
        mark_assigned(booking, "h2", NOW)


def test_rejection_requires_the_assigned_helper(booking):
    mark_assigned(booking, "h1", NOW)

    with pytest.raises(BookingStateException):
        record_rejection(booking, "h2", "busy", NOW)


def test_exhausted_only_from_pending(booking):
    mark_assigned(booking, "h1", NOW)
    with pytest.raises(BookingStateException):
        mark_exhausted(booking)

    record_rejection(booking, "h1", "busy", NOW)
    mark_exhausted(booking)
    assert booking.status == BookingStatus.NO_HELPER_AVAILABLE
    assert booking.is_terminal


def test_complete_straight_from_accepted(booking):
    mark_assigned(booking, "h1", NOW)
    mark_accepted(booking, "h1", NOW)

    mark_completed(booking, "h1", NOW)

    assert booking.status == BookingStatus.COMPLETED


def test_cancel_returns_helper_to_release(booking):
    mark_assigned(booking, "h1", NOW)

    assert mark_cancelled(booking) == "h1"
    assert booking.status == BookingStatus.CANCELLED

    with pytest.raises(BookingStateException):
        mark_cancelled(booking)


def test_store_hands_out_copies(booking):
    store = InMemoryBookingStore()
    store.add(booking)

    loaded = store.load(booking.id)
    loaded.status = BookingStatus.ASSIGNED

    assert store.load(booking.id).status == BookingStatus.PENDING
    store.save(loaded)
    assert store.load(booking.id).status == BookingStatus.ASSIGNED


def test_store_unknown_booking():
    store = InMemoryBookingStore()

    with pytest.raises(BookingNotFound):
        store.load("missing")
    with pytest.raises(BookingNotFound):
        store.lock("missing")
