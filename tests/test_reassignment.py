import pytest

from bookings.models import AssignmentOutcome, BookingStatus
from dispatch.dispatcher import NoCandidateError
from dispatch.reassignment import DispatchExhausted
from dispatch.state_machines.booking_state import BookingStateException

from conftest import DELHI, make_helper


def test_plumbing_booking_end_to_end(service, registry, store, sink):
    """
    Two plumbers at 0.3km (4.5) and 0.4km (4.9): the closer one gets the
    offer, rejects, and the booking moves to the other.
    """
    registry.register(make_helper("h1", 0.3, rating=4.5))
    registry.register(make_helper("h2", 0.4, rating=4.9))

    booking, result = service.create_booking("req-1", DELHI, "plumbing")

    assert result.helper_id == "h1"
    assert booking.status == BookingStatus.ASSIGNED
    assert [c.helper_id for c in result.alternates] == ["h2"]

    result = service.reject(booking.id, "h1", "too far")

    assert result.helper_id == "h2"
    stored = store.load(booking.id)
    assert stored.status == BookingStatus.ASSIGNED
    assert stored.helper_id == "h2"
    assert stored.rejection_count == 1
    assert [(r.helper_id, r.outcome) for r in stored.history] == [
        ("h1", AssignmentOutcome.REJECTED),
        ("h2", AssignmentOutcome.ASSIGNED),
    ]
    assert stored.history[0].reason == "too far"
    assert stored.history[0].rejected_at is not None
    assert registry.get("h1").available is True
    assert registry.get("h2").available is False

    assert sink.requester_kinds() == ["helper_assigned", "helper_reassigned"]
    assert [h for h, _ in sink.helper_events] == ["h1", "h2"]


def test_rejection_ceiling_ends_booking(service, registry, store, sink):
    for i in range(5):
        registry.register(make_helper(f"h{i}", 1.0 + i))
    booking, _ = service.create_booking("req-1", DELHI, "plumbing")

    for i in range(3):
        result = service.reject(booking.id, f"h{i}")
        assert result.helper_id == f"h{i + 1}"

    with pytest.raises(DispatchExhausted) as exc_info:
        service.reject(booking.id, "h3")

    assert exc_info.value.rejection_count == 4
    stored = store.load(booking.id)
    assert stored.status == BookingStatus.NO_HELPER_AVAILABLE
    assert stored.rejection_count == 4
    assert stored.helper_id is None
    assert stored.is_terminal
    # h4 was never offered it
    assert [r.helper_id for r in stored.history] == ["h0", "h1", "h2", "h3"]
    assert all(h.available for h in registry.all())
    assert not service.supervisor.is_armed(booking.id)
    assert sink.requester_kinds()[-1] == "booking_failed"


def test_timeouts_count_towards_ceiling(service, registry, store, clock):
    for i in range(4):
        registry.register(make_helper(f"h{i}", 1.0 + i))
    booking, _ = service.create_booking("req-1", DELHI, "plumbing")

    for _ in range(4):
        clock.advance(30)

    stored = store.load(booking.id)
    assert stored.status == BookingStatus.NO_HELPER_AVAILABLE
    assert stored.rejection_count == 4
    assert {r.outcome for r in stored.history} == {AssignmentOutcome.TIMEOUT}
    assert clock.pending() == []


def test_helper_never_offered_same_booking_twice(service, registry, store):
    registry.register(make_helper("h1", 1.0))
    registry.register(make_helper("h2", 2.0))
    booking, _ = service.create_booking("req-1", DELHI, "plumbing")

    service.reject(booking.id, "h1")

    # h1 is free again and still closest, but has already seen this booking
    with pytest.raises(NoCandidateError):
        service.reject(booking.id, "h2")

    stored = store.load(booking.id)
    history_ids = [r.helper_id for r in stored.history]
    assert history_ids == ["h1", "h2"]
    assert len(set(history_ids)) == len(history_ids)
    assert stored.status == BookingStatus.PENDING
    assert stored.helper_id is None


def test_no_replacement_leaves_booking_pending(service, registry, store, sink):
    registry.register(make_helper("h1", 1.0))
    booking, _ = service.create_booking("req-1", DELHI, "plumbing")

    with pytest.raises(NoCandidateError):
        service.reject(booking.id, "h1")

    stored = store.load(booking.id)
    assert stored.status == BookingStatus.PENDING
    assert stored.rejection_count == 1
    assert registry.get("h1").available is True
    assert sink.requester_kinds()[-1] == "reassignment_failed"


def test_pending_booking_can_be_retried_later(service, registry, store):
    registry.register(make_helper("h1", 1.0))
    booking, _ = service.create_booking("req-1", DELHI, "plumbing")
    with pytest.raises(NoCandidateError):
        service.reject(booking.id, "h1")

    registry.register(make_helper("h2", 3.0))
    result = service.retry_dispatch(booking.id)

    assert result.helper_id == "h2"
    assert store.load(booking.id).status == BookingStatus.ASSIGNED


def test_reject_by_wrong_helper_is_refused(service, registry, store):
    registry.register(make_helper("h1", 1.0))
    registry.register(make_helper("h2", 2.0))
    booking, _ = service.create_booking("req-1", DELHI, "plumbing")

    with pytest.raises(BookingStateException):
        service.reject(booking.id, "h2")

    stored = store.load(booking.id)
    assert stored.helper_id == "h1"
    assert stored.rejection_count == 0


def test_reject_after_accept_is_refused(service, registry, store):
    registry.register(make_helper("h1", 1.0))
    registry.register(make_helper("h2", 2.0))
    booking, _ = service.create_booking("req-1", DELHI, "plumbing")
    service.accept(booking.id, "h1")

    with pytest.raises(BookingStateException):
        service.reject(booking.id, "h1")

    assert store.load(booking.id).status == BookingStatus.ACCEPTED
