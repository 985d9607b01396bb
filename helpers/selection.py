"""
Purpose: Hard eligibility rules for offering a booking to a helper.
What it does:
Decides, per helper, whether they may be considered at all (online, free,
skilled, close enough, not already offered this booking). Ranking happens
later in dispatch.scoring.
"""

from typing import Collection, FrozenSet, Iterable, List, Optional

from routing.geo import BoundingBox, LatLon, distance

from .models import Helper


def is_eligible(
    helper: Helper,
    location: LatLon,
    required_skills: FrozenSet[str],
    radius_km: float,
    exclude: Collection[str] = (),
    box: Optional[BoundingBox] = None,
) -> bool:
    if not helper.online or not helper.available:
        return False

    if helper.id in exclude:
        return False

    if not helper.has_any_skill(required_skills):
        return False

    # cheap rectangle check before the exact haversine
    if box is not None and not box.contains(helper.location):
        return False

    return distance(location, helper.location) <= radius_km


def filter_eligible_helpers(
    helpers: Iterable[Helper],
    location: LatLon,
    required_skills: FrozenSet[str],
    radius_km: float,
    exclude: Collection[str] = (),
    box: Optional[BoundingBox] = None,
) -> List[Helper]:
    """
    Returns only helpers who are online, free, hold one of the required
    skills and are within radius_km of location.
    """
    return [
        helper
        for helper in helpers
        if is_eligible(helper, location, required_skills, radius_km, exclude, box)
    ]
