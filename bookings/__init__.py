"""
Bookings domain package.

Public API:
- Domain models: Booking, AssignmentRecord, BookingStatus, AssignmentOutcome
- Collaborators: ServiceCatalog, ServiceDefinition, InMemoryBookingStore
- Errors: UnknownService, BookingNotFound
"""
from .models import AssignmentOutcome, AssignmentRecord, Booking, BookingStatus, TERMINAL_STATUSES
from .catalog import ServiceCatalog, ServiceDefinition, UnknownService
from .store import BookingNotFound, InMemoryBookingStore

__all__ = [
    "AssignmentOutcome",
    "AssignmentRecord",
    "Booking",
    "BookingStatus",
    "TERMINAL_STATUSES",
    "ServiceCatalog",
    "ServiceDefinition",
    "UnknownService",
    "BookingNotFound",
    "InMemoryBookingStore",
]
