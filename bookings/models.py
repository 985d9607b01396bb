"""
Purpose: Domain models for the Bookings capability.
What it does:
- Defines core data structures:
- Booking (id, requester, location, required skill, status, assigned helper,
  assignment history, rejection counter)
- AssignmentRecord (one entry of the append-only assignment history)

Defines enums/constants:
- BookingStatus = PENDING | ASSIGNED | ACCEPTED | IN_PROGRESS | COMPLETED |
  CANCELLED | REJECTED | NO_HELPER_AVAILABLE
- AssignmentOutcome = ASSIGNED | REJECTED | TIMEOUT

Rule: No registry calls, no dispatch logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
import uuid

LatLon = Tuple[float, float]


class BookingStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    NO_HELPER_AVAILABLE = "no-helper-available"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_HELPER_AVAILABLE}
)


class AssignmentOutcome(str, Enum):
    ASSIGNED = "assigned"
    REJECTED = "rejected"
    TIMEOUT = "timeout"


@dataclass
class AssignmentRecord:
    """
    One offer of a booking to a helper. Only the outcome fields change, and
    only once: from ASSIGNED to REJECTED or TIMEOUT.
    """
    helper_id: str
    assigned_at: datetime
    outcome: AssignmentOutcome = AssignmentOutcome.ASSIGNED
    reason: Optional[str] = None
    rejected_at: Optional[datetime] = None


@dataclass
class Booking:
    """
    A service request awaiting or holding a helper assignment.
    """
    id: str
    requester_id: str
    location: LatLon
    skill: str

    status: BookingStatus = BookingStatus.PENDING
    helper_id: Optional[str] = None
    history: List[AssignmentRecord] = field(default_factory=list)
    rejection_count: int = 0

    price: Optional[float] = None
    notes: Optional[str] = None

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @staticmethod
    def new(requester_id: str, location: LatLon, skill: str, notes: Optional[str] = None) -> Booking:
        return Booking(
            id=str(uuid.uuid4()),
            requester_id=requester_id,
            location=location,
            skill=skill,
            notes=notes,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def live_assignment(self) -> Optional[AssignmentRecord]:
        """The single history entry still awaiting a response, if any."""
        for record in reversed(self.history):
            if record.outcome == AssignmentOutcome.ASSIGNED:
                return record
        return None

    def offered_helper_ids(self) -> List[str]:
        """Every helper this booking has ever been offered to, in order."""
        return [record.helper_id for record in self.history]
