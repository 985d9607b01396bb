import threading

import pytest

from bookings.catalog import UnknownService
from bookings.models import AssignmentOutcome, Booking, BookingStatus
from dispatch.dispatcher import AssignmentEngine, NoCandidateError
from dispatch.state_machines.booking_state import BookingStateException

from conftest import DELHI, make_helper


@pytest.fixture
def engine(registry, store, catalog, clock, policy):
    return AssignmentEngine(registry, store, catalog, clock=clock, policy=policy)


def _new_booking(store, skill="plumbing", location=DELHI):
    return store.add(Booking.new("req-1", location, skill))


def test_assign_reserves_best_helper_and_records_offer(engine, registry, store, clock):
    registry.register(make_helper("near", 0.3, rating=4.5))
    registry.register(make_helper("far", 0.4, rating=4.9))
    booking = _new_booking(store)

    result = engine.assign(booking.id)

    assert result.helper_id == "near"
    assert result.service.category == "plumbing"
    assert result.assigned.distance_km == 0.3
    assert result.assigned.eta_minutes > 0

    stored = store.load(booking.id)
    assert stored.status == BookingStatus.ASSIGNED
    assert stored.helper_id == "near"
    assert stored.price == 299.0
    assert len(stored.history) == 1
    assert stored.history[0].helper_id == "near"
    assert stored.history[0].outcome == AssignmentOutcome.ASSIGNED
    assert stored.history[0].assigned_at == clock.now()

    assert registry.get("near").available is False
    assert registry.get("near").active_bookings == (booking.id,)


def test_runners_up_are_listed_but_not_reserved(engine, registry, store):
    for i, km in enumerate((1.0, 2.0, 3.0, 4.0)):
        registry.register(make_helper(f"h{i}", km))
    booking = _new_booking(store)

    result = engine.assign(booking.id)

    assert result.helper_id == "h0"
    assert [c.helper_id for c in result.alternates] == ["h1", "h2"]
    for alternate in result.alternates:
        assert registry.get(alternate.helper_id).available is True


def test_no_candidates_within_radius(engine, registry, store):
    registry.register(make_helper("far", 15.0))
    booking = _new_booking(store)

    with pytest.raises(NoCandidateError):
        engine.assign(booking.id)

    stored = store.load(booking.id)
    assert stored.status == BookingStatus.PENDING
    assert stored.history == []
    assert registry.get("far").available is True


def test_unknown_or_inactive_service(engine, registry, store):
    registry.register(make_helper("painter", 1.0, skills=("painting",)))

    for skill in ("painting", "astrology"):
        booking = _new_booking(store, skill=skill)
        with pytest.raises(UnknownService):
            engine.assign(booking.id)
        assert store.load(booking.id).status == BookingStatus.PENDING

    assert registry.get("painter").available is True


def test_service_display_name_counts_as_skill(engine, registry, store):
    registry.register(make_helper("cleaner", 1.0, skills=("Home Cleaning",)))
    booking = _new_booking(store, skill="cleaning")

    assert engine.assign(booking.id).helper_id == "cleaner"


def test_assign_requires_pending_booking(engine, registry, store):
    registry.register(make_helper("h1", 1.0))
    registry.register(make_helper("h2", 2.0))
    booking = _new_booking(store)
    engine.assign(booking.id)

    with pytest.raises(BookingStateException):
        engine.assign(booking.id)

    assert registry.get("h2").available is True


def test_helpers_from_history_are_excluded(engine, registry, store, clock):
    registry.register(make_helper("h1", 1.0))
    registry.register(make_helper("h2", 2.0))
    booking = _new_booking(store)
    engine.assign(booking.id)

    # simulate a closed offer to h1
    stored = store.load(booking.id)
    stored.history[0].outcome = AssignmentOutcome.REJECTED
    stored.status = BookingStatus.PENDING
    stored.helper_id = None
    stored.rejection_count = 1
    store.save(stored)
    registry.release("h1", booking.id)

    result = engine.assign(booking.id)

    assert result.helper_id == "h2"
    assert [r.helper_id for r in store.load(booking.id).history] == ["h1", "h2"]


def test_lost_reservation_race_moves_down_the_list(engine, registry, store, monkeypatch):
    registry.register(make_helper("near", 1.0))
    registry.register(make_helper("far", 2.0))
    booking = _new_booking(store)

    original = registry.find_candidates

    def racing_find(*args, **kwargs):
        found = original(*args, **kwargs)
        # another booking grabs the best helper between search and reserve
        registry.reserve("near", "competing-booking")
        return found

    monkeypatch.setattr(registry, "find_candidates", racing_find)

    result = engine.assign(booking.id)

    assert result.helper_id == "far"
    assert result.alternates == []
    assert registry.get("near").active_bookings == ("competing-booking",)


def test_every_reservation_lost(engine, registry, store, monkeypatch):
    registry.register(make_helper("only", 1.0))
    booking = _new_booking(store)

    original = registry.find_candidates

    def racing_find(*args, **kwargs):
        found = original(*args, **kwargs)
        registry.reserve("only", "competing-booking")
        return found

    monkeypatch.setattr(registry, "find_candidates", racing_find)

    with pytest.raises(NoCandidateError):
        engine.assign(booking.id)
    assert store.load(booking.id).status == BookingStatus.PENDING


def test_failed_save_releases_reservation(engine, registry, store, monkeypatch):
    registry.register(make_helper("h1", 1.0))
    booking = _new_booking(store)

    def broken_save(_booking):
        raise RuntimeError("storage unavailable")

    monkeypatch.setattr(store, "save", broken_save)

    with pytest.raises(RuntimeError):
        engine.assign(booking.id)

    assert registry.get("h1").available is True
    assert registry.get("h1").active_bookings == ()
    assert store.load(booking.id).status == BookingStatus.PENDING


def test_concurrent_bookings_never_share_a_helper(engine, registry, store):
    """
    20 bookings race for 5 helpers: exactly 5 get one, each helper is
    bound to at most one booking.
    """
    for i in range(5):
        registry.register(make_helper(f"h{i}", 0.5 + i))
    bookings = [_new_booking(store) for _ in range(20)]

    barrier = threading.Barrier(len(bookings))
    assigned, failed = [], []
    results_lock = threading.Lock()

    def run(booking_id):
        barrier.wait()
        try:
            result = engine.assign(booking_id)
            with results_lock:
                assigned.append(result.helper_id)
        except NoCandidateError:
            with results_lock:
                failed.append(booking_id)

    threads = [threading.Thread(target=run, args=(b.id,)) for b in bookings]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(assigned) == [f"h{i}" for i in range(5)]
    assert len(failed) == 15
    for helper in registry.all():
        assert len(helper.active_bookings) == 1
        assert helper.available is False


class BrokenEtaService:
    def estimate_minutes(self, origin, destination, mode=None):
        raise KeyError("duration")


def test_failed_eta_lookup_leaves_nothing_half_assigned(registry, store, catalog, clock, policy):
    registry.register(make_helper("h1", 1.0))
    registry.register(make_helper("h2", 2.0))
    engine = AssignmentEngine(registry, store, catalog, clock=clock, policy=policy, eta_service=BrokenEtaService())
    booking = _new_booking(store)

    with pytest.raises(KeyError):
        engine.assign(booking.id)

    stored = store.load(booking.id)
    assert stored.status == BookingStatus.PENDING
    assert stored.helper_id is None
    assert stored.history == []
    assert all(h.available for h in registry.all())
