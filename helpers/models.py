"""
Purpose: Core data models for the helpers domain.
What it does:
Defines the structure of a Helper (a mobile service provider) without relying
on any ORM. Helpers are immutable snapshots; the registry swaps in a new
snapshot via dataclasses.replace on every transition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import FrozenSet, Iterable, Optional, Tuple

from routing.geo import LatLon, validate_point


def normalize_skill(skill: str) -> str:
    return skill.strip().casefold()


def normalize_skills(skills: Iterable[str]) -> FrozenSet[str]:
    return frozenset(normalize_skill(s) for s in skills if s and s.strip())


@dataclass(frozen=True)
class Helper:
    """
    A point-in-time representation of a Helper.

    `available` means "free to receive a new offer": it is False exactly while
    the helper holds at least one booking in `active_bookings`.
    `online` is the helper's own duty toggle; offline helpers are never
    offered work but may still be finishing an accepted booking.
    """
    id: str
    location: LatLon
    skills: FrozenSet[str]
    rating: float = 0.0
    available: bool = True
    online: bool = True
    active_bookings: Tuple[str, ...] = ()

    name: Optional[str] = None
    phone: Optional[str] = None
    travel_mode: str = "bike"
    completed_bookings: int = 0
    last_ping_at: Optional[datetime] = field(default=None, compare=False)

    @classmethod
    def new(
        cls,
        helper_id: str,
        lat: float,
        lon: float,
        skills: Iterable[str],
        rating: float = 0.0,
        online: bool = True,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        travel_mode: str = "bike",
        last_ping_at: Optional[datetime] = None,
    ) -> Helper:
        if not 0 <= rating <= 5:
            raise ValueError(f"rating must be between 0 and 5, got {rating}")

        return cls(
            id=helper_id,
            location=validate_point((lat, lon)),
            skills=normalize_skills(skills),
            rating=float(rating),
            online=online,
            name=name,
            phone=phone,
            travel_mode=travel_mode,
            last_ping_at=last_ping_at or datetime.now(timezone.utc),
        )

    def has_any_skill(self, required: FrozenSet[str]) -> bool:
        return not self.skills.isdisjoint(required)
