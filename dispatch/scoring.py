#Purpose: Ranking/selection model (the "who is best" layer).
#Takes candidates (already eligible) + the booking location.
#Produces an ordered list: offer sequence for the booking.
#Ordering rule (one comparator, not two passes):
#  if the two distances differ by less than the similarity threshold,
#  the higher rating goes first; otherwise the closer helper goes first.
#True ties keep their input order (Python's sort is stable).

from __future__ import annotations

from dataclasses import dataclass
from functools import cmp_to_key
from typing import Iterable, List

from helpers.models import Helper
from routing.geo import LatLon, distance

SIMILAR_DISTANCE_KM = 0.1


@dataclass(frozen=True)
class RankedCandidate:
    helper: Helper
    distance_km: float

    @property
    def helper_id(self) -> str:
        return self.helper.id

    @property
    def rating(self) -> float:
        return self.helper.rating


def compare_candidates(a: RankedCandidate, b: RankedCandidate, similar_distance_km: float = SIMILAR_DISTANCE_KM) -> float:
    if abs(a.distance_km - b.distance_km) < similar_distance_km:
        return b.rating - a.rating
    return a.distance_km - b.distance_km


def rank_candidates(
    candidates: Iterable[Helper],
    target: LatLon,
    similar_distance_km: float = SIMILAR_DISTANCE_KM,
) -> List[RankedCandidate]:
    """
    Full ordered list of candidates for `target`; callers take a prefix.
    """
    ranked = [RankedCandidate(helper=helper, distance_km=distance(target, helper.location)) for helper in candidates]

    ranked.sort(key=cmp_to_key(lambda a, b: compare_candidates(a, b, similar_distance_km)))
    return ranked
