import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Tuple

import pytest

from bookings.catalog import ServiceCatalog, ServiceDefinition
from bookings.store import InMemoryBookingStore
from dispatch.policy import default_dispatch_policy
from dispatch.service import DispatchService
from helpers.models import Helper
from helpers.registry import HelperRegistry

# Connaught Place, New Delhi
DELHI = (28.6139, 77.2090)

KM_PER_DEGREE_LAT = 6371 * math.pi / 180


def north_of(point, km):
    """A point exactly `km` due north of `point` (haversine along a meridian)."""
    return (point[0] + km / KM_PER_DEGREE_LAT, point[1])


def make_helper(helper_id, km_north, rating=4.0, skills=("plumbing",), online=True, origin=DELHI):
    lat, lon = north_of(origin, km_north)
    return Helper.new(helper_id, lat, lon, skills=skills, rating=rating, online=online, name=helper_id.title())


@dataclass
class ScheduledCall:
    due: datetime
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self):
        self.cancelled = True


class ManualClock:
    """
    Deterministic clock: time only moves when a test calls advance(), and due
    callbacks run synchronously on the calling thread.
    """
    def __init__(self, start=datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)):
        self._now = start
        self._lock = threading.Lock()
        self.scheduled: List[ScheduledCall] = []

    def now(self):
        return self._now

    def call_later(self, delay_seconds, callback):
        call = ScheduledCall(due=self._now + timedelta(seconds=delay_seconds), callback=callback)
        with self._lock:
            self.scheduled.append(call)
        return call

    def pending(self):
        with self._lock:
            return [call for call in self.scheduled if not call.cancelled and not call.fired]

    def advance(self, seconds):
        self._now += timedelta(seconds=seconds)
        due = [call for call in self.pending() if call.due <= self._now]
        for call in sorted(due, key=lambda c: c.due):
            if call.cancelled:
                continue
            call.fired = True
            call.callback()


@dataclass
class RecordingSink:
    helper_events: List[Tuple[str, object]] = field(default_factory=list)
    requester_events: List[Tuple[str, object]] = field(default_factory=list)

    def notify_helper(self, helper_id, event):
        self.helper_events.append((helper_id, event))

    def notify_requester(self, requester_id, event):
        self.requester_events.append((requester_id, event))

    def requester_kinds(self):
        return [event.kind for _, event in self.requester_events]

    def helper_kinds(self):
        return [event.kind for _, event in self.helper_events]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def catalog():
    return ServiceCatalog(
        [
            ServiceDefinition("plumbing", "Plumbing", base_price=299.0),
            ServiceDefinition("electrical", "Electrical", base_price=349.0),
            ServiceDefinition("cleaning", "Home Cleaning", base_price=499.0),
            ServiceDefinition("painting", "Painting", base_price=999.0, active=False),
        ]
    )


@pytest.fixture
def registry():
    return HelperRegistry()


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def policy():
    return default_dispatch_policy()


@pytest.fixture
def service(registry, catalog, store, clock, policy, sink):
    return DispatchService(registry, catalog, store=store, clock=clock, policy=policy, notification_sink=sink)
