"""
Purpose: Notification events + the sink interface the core pushes them to.
What it does:
- One frozen dataclass per notification kind (explicit tagged variants
  instead of free-form payload dicts)
- NotificationSink: the narrow push/SMS/socket collaborator interface
- LoggingNotificationSink: default sink, just logs
- SafeNotifier: fire-and-forget wrapper, a failing sink never breaks dispatch
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import ClassVar, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    kind: ClassVar[str] = "event"
    booking_id: str

    def payload(self) -> dict:
        return {"event": self.kind, **asdict(self)}


# --- To helpers ---

@dataclass(frozen=True)
class BookingOffered(NotificationEvent):
    kind: ClassVar[str] = "new_booking"
    skill: str
    location: Tuple[float, float]
    distance_km: float
    eta_minutes: int
    respond_within_seconds: float


@dataclass(frozen=True)
class BookingTimedOut(NotificationEvent):
    kind: ClassVar[str] = "booking_timeout"
    message: str = "Booking request timed out"


@dataclass(frozen=True)
class BookingCancelled(NotificationEvent):
    kind: ClassVar[str] = "booking_cancelled"


# --- To requesters ---

@dataclass(frozen=True)
class HelperAssigned(NotificationEvent):
    kind: ClassVar[str] = "helper_assigned"
    helper_id: str
    helper_name: Optional[str]
    rating: float
    distance_km: float
    eta_minutes: int


@dataclass(frozen=True)
class HelperReassigned(HelperAssigned):
    kind: ClassVar[str] = "helper_reassigned"


@dataclass(frozen=True)
class NoHelperFound(NotificationEvent):
    kind: ClassVar[str] = "no_helper_found"
    message: str = "No helper is available nearby yet. We will keep looking."


@dataclass(frozen=True)
class ReassignmentFailed(NotificationEvent):
    kind: ClassVar[str] = "reassignment_failed"
    message: str = "Unable to reassign helper. Searching for alternatives..."


@dataclass(frozen=True)
class BookingFailed(NotificationEvent):
    kind: ClassVar[str] = "booking_failed"
    rejection_count: int = 0
    message: str = "Unable to find available helper. Please try again later."


@dataclass(frozen=True)
class BookingAccepted(NotificationEvent):
    kind: ClassVar[str] = "booking_accepted"
    helper_id: str = ""


class NotificationSink(Protocol):
    def notify_helper(self, helper_id: str, event: NotificationEvent) -> None:
        ...

    def notify_requester(self, requester_id: str, event: NotificationEvent) -> None:
        ...


class LoggingNotificationSink:
    def notify_helper(self, helper_id: str, event: NotificationEvent) -> None:
        logger.info("-> helper %s: %s", helper_id, event.payload())

    def notify_requester(self, requester_id: str, event: NotificationEvent) -> None:
        logger.info("-> requester %s: %s", requester_id, event.payload())


class SafeNotifier:
    """
    Delivery is best effort: the core has already committed its state change
    by the time it notifies, so a sink failure is logged and dropped.
    """
    def __init__(self, sink: Optional[NotificationSink] = None):
        self.sink = sink or LoggingNotificationSink()

    def helper(self, helper_id: str, event: NotificationEvent) -> None:
        try:
            self.sink.notify_helper(helper_id, event)
        except Exception:
            logger.exception("Failed to notify helper %s of %s", helper_id, event.kind)

    def requester(self, requester_id: str, event: NotificationEvent) -> None:
        try:
            self.sink.notify_requester(requester_id, event)
        except Exception:
            logger.exception("Failed to notify requester %s of %s", requester_id, event.kind)
