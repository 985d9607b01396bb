#Expose the high-level pipeline pieces:
#Candidate filtering (hard rules)
#Scoring / ranking
#Assignment engine (one dispatch attempt)
#Response-timeout supervisor + reassignment coordinator (the offer protocol)
#DispatchService (the "one call" entry points)

from .candidate_filter import build_base_candidates
from .scoring import RankedCandidate, rank_candidates
from .policy import DispatchPolicy, default_dispatch_policy
from .clock import Clock, SystemClock
from .dispatcher import AssignmentEngine, AssignmentResult, CandidateSnapshot, NoCandidateError
from .timeouts import ResponseTimeoutSupervisor
from .reassignment import DispatchExhausted, ReassignmentCoordinator
from .service import DispatchService
from .state_machines.booking_state import BookingStateException

__all__ = [
    "build_base_candidates",
    "RankedCandidate",
    "rank_candidates",
    "DispatchPolicy",
    "default_dispatch_policy",
    "Clock",
    "SystemClock",
    "AssignmentEngine",
    "AssignmentResult",
    "CandidateSnapshot",
    "NoCandidateError",
    "ResponseTimeoutSupervisor",
    "DispatchExhausted",
    "ReassignmentCoordinator",
    "DispatchService",
    "BookingStateException",
]
