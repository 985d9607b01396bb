"""
Purpose: Central configuration for helper selection and the offer protocol.
What it does:

Stores all tunable thresholds/caps for finding helpers and waiting on them:

SEARCH_RADIUS_KM = 10
RESPONSE_TIMEOUT_SECONDS = 30
MAX_REJECTIONS = 3          (the 4th rejection/timeout ends the booking)
SIMILAR_DISTANCE_KM = 0.1   (closer than this -> rating decides)
RUNNER_UP_COUNT = 2

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from routing.geo import TRAVEL_SPEEDS_KMH


@dataclass(frozen=True)
class DispatchPolicy:
    """
    Central configuration for helper dispatch thresholds.
    """

    # --- Candidate search ---
    # Only helpers within this straight-line distance are considered.
    search_radius_km: float = 10.0

    # Two candidates closer together than this are "the same distance away"
    # and the better-rated one is offered first.
    similar_distance_km: float = 0.1

    # Extra candidates returned next to the chosen helper (never reserved).
    runner_up_count: int = 2

    # --- Offer protocol ---
    # How long the offered helper has to accept before the offer is treated
    # as an implicit rejection. Uniform for all services for now.
    response_timeout_seconds: float = 30.0

    # A booking is abandoned once rejection_count exceeds this.
    max_rejections: int = 3

    # --- ETA ---
    # Used when a helper has no travel mode of their own.
    default_travel_mode: str = "bike"

    # --- Map view ---
    nearby_limit: int = 20

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.search_radius_km <= 0:
            raise ValueError("search_radius_km must be > 0")

        if self.similar_distance_km < 0:
            raise ValueError("similar_distance_km must be >= 0")

        if self.runner_up_count < 0:
            raise ValueError("runner_up_count must be >= 0")

        if self.response_timeout_seconds <= 0:
            raise ValueError("response_timeout_seconds must be > 0")

        if self.max_rejections < 0:
            raise ValueError("max_rejections must be >= 0")

        if self.default_travel_mode not in TRAVEL_SPEEDS_KMH:
            raise ValueError(f"unknown default_travel_mode '{self.default_travel_mode}'")

        if self.nearby_limit <= 0:
            raise ValueError("nearby_limit must be > 0")

    @classmethod
    def from_env(cls) -> DispatchPolicy:
        """
        Build a policy from DISPATCH_* environment variables (a .env file is
        honoured). Unset variables keep their defaults.
        """
        load_dotenv()
        defaults = cls()

        p = cls(
            search_radius_km=float(os.getenv("DISPATCH_SEARCH_RADIUS_KM", defaults.search_radius_km)),
            similar_distance_km=float(os.getenv("DISPATCH_SIMILAR_DISTANCE_KM", defaults.similar_distance_km)),
            runner_up_count=int(os.getenv("DISPATCH_RUNNER_UP_COUNT", defaults.runner_up_count)),
            response_timeout_seconds=float(
                os.getenv("DISPATCH_RESPONSE_TIMEOUT_SECONDS", defaults.response_timeout_seconds)
            ),
            max_rejections=int(os.getenv("DISPATCH_MAX_REJECTIONS", defaults.max_rejections)),
            default_travel_mode=os.getenv("DISPATCH_DEFAULT_TRAVEL_MODE", defaults.default_travel_mode),
            nearby_limit=int(os.getenv("DISPATCH_NEARBY_LIMIT", defaults.nearby_limit)),
        )
        p.validate()
        return p


def default_dispatch_policy() -> DispatchPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DispatchPolicy()
    p.validate()
    return p
