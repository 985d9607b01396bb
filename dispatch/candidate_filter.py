#Purpose: Non-routing hard eligibility filtering (rule gates) for one booking.
#Builds the base candidate set before scoring.
#Responsibilities:
#online/available (delegated to the registry)
#skill match: the booking's category or the service's display name
#search radius from policy
#never re-offer a booking to a helper already in its history
#Output: "rule-qualified helpers" (still not ranked).

from typing import Collection, List

from bookings.catalog import ServiceDefinition
from helpers.registry import HelperRegistry
from routing.geo import LatLon


def required_skills_for(skill: str, service: ServiceDefinition) -> frozenset:
    return frozenset({skill}) | service.skill_aliases


def build_base_candidates(
    registry: HelperRegistry,
    location: LatLon,
    skill: str,
    service: ServiceDefinition,
    radius_km: float,
    already_offered: Collection[str] = (),
) -> List:
    return registry.find_candidates(
        location,
        required_skills_for(skill, service),
        radius_km,
        exclude=frozenset(already_offered),
    )
