"""
Purpose: Pure distance / geometry math for dispatch.
What it does:
- Great-circle (haversine) distance between two (lat, lon) points in km
- Radius containment checks
- Bounding-box computation used as a cheap pre-filter before haversine
- Travel-time estimation from a speed table

Rule: No state, no I/O. Everything here is a plain function.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Optional, Sequence, Tuple

# internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0

# distance() rounds to 2 decimals; anything up to this much past a radius
# still compares as inside it
ROUNDING_MARGIN_KM = 0.005

# Average speeds in km/h
TRAVEL_SPEEDS_KMH: Dict[str, float] = {
    "walking": 5,
    "bike": 15,
    "auto": 25,  # rickshaw
    "scooter": 20,
    "car": 30,  # city traffic
}
DEFAULT_TRAVEL_MODE = "bike"

# 10% added for traffic / delays
ARRIVAL_BUFFER = 0.1


class InvalidInput(ValueError):
    """Raised for malformed coordinates, radii or distances."""
    pass


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, point: LatLon) -> bool:
        lat, lon = point
        if not self.min_lat <= lat <= self.max_lat:
            return False
        # boxes near the antimeridian extend past +/-180
        return any(self.min_lng <= candidate <= self.max_lng for candidate in (lon, lon - 360, lon + 360))


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def validate_point(point: Optional[Sequence[Any]]) -> LatLon:
    """
    Normalise a (lat, lon) pair, raising InvalidInput when either part is
    missing or not a finite number.
    """
    if point is None:
        raise InvalidInput("coordinate is required")
    try:
        lat, lon = point
    except (TypeError, ValueError):
        raise InvalidInput(f"coordinate must be a (lat, lon) pair, got {point!r}")

    if not _is_number(lat) or not _is_number(lon):
        raise InvalidInput(f"coordinate values must be numeric, got {point!r}")

    return float(lat), float(lon)


def distance(a: Optional[LatLon], b: Optional[LatLon]) -> float:
    """
    Haversine great-circle distance in kilometres, rounded to 2 decimals.
    """
    lat1, lon1 = validate_point(a)
    lat2, lon2 = validate_point(b)

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return round(EARTH_RADIUS_KM * c, 2)


def within_radius(a: Optional[LatLon], b: Optional[LatLon], radius_km: float) -> bool:
    """
    True if the two points are at most radius_km apart.
    A missing point is simply "not within range", not an error.
    """
    if a is None or b is None:
        return False

    if not _is_number(radius_km) or radius_km <= 0:
        raise InvalidInput("radius must be positive")

    return distance(a, b) <= radius_km


def estimate_arrival(distance_km: float, mode: Optional[str] = None) -> int:
    """
    Minutes to cover distance_km at the speed for `mode`, plus a 10% buffer,
    rounded up. Unknown or omitted modes fall back to "bike".
    """
    if not _is_number(distance_km):
        raise InvalidInput(f"distance must be numeric, got {distance_km!r}")
    if distance_km < 0:
        raise InvalidInput("distance must be non-negative")
    if distance_km == 0:
        return 0

    speed = TRAVEL_SPEEDS_KMH.get(mode or DEFAULT_TRAVEL_MODE, TRAVEL_SPEEDS_KMH[DEFAULT_TRAVEL_MODE])
    minutes = (distance_km / speed) * 60

    return math.ceil(minutes + minutes * ARRIVAL_BUFFER)


def bounding_box(center: Optional[LatLon], radius_km: float) -> BoundingBox:
    """
    Angular-distance approximation of the box enclosing a circle of
    radius_km around center. Meant for pre-filtering only: callers must
    still run the exact haversine check, and should pad radius_km by
    ROUNDING_MARGIN_KM when that check uses the rounded distance().
    """
    if center is None:
        raise InvalidInput("center point is required")
    lat_deg, lng_deg = validate_point(center)

    if not _is_number(radius_km) or radius_km <= 0:
        raise InvalidInput("radius must be positive")

    lat = math.radians(lat_deg)
    lng = math.radians(lng_deg)
    angular = radius_km / EARTH_RADIUS_KM

    # cos(lat) -> 0 at the poles, in which case every longitude is in range
    cos_lat = math.cos(lat)
    lng_delta = angular / cos_lat if cos_lat > 1e-12 else math.pi

    return BoundingBox(
        min_lat=math.degrees(lat - angular),
        max_lat=math.degrees(lat + angular),
        min_lng=math.degrees(lng - lng_delta),
        max_lng=math.degrees(lng + lng_delta),
    )


def from_geojson(coordinates: Sequence[float]) -> LatLon:
    """GeoJSON [lon, lat] -> internal (lat, lon)."""
    if coordinates is None or len(coordinates) < 2:
        raise InvalidInput(f"invalid GeoJSON coordinates: {coordinates!r}")
    lon, lat = coordinates[0], coordinates[1]
    return validate_point((lat, lon))


def to_geojson(point: LatLon) -> list:
    """Internal (lat, lon) -> GeoJSON [lon, lat]."""
    lat, lon = validate_point(point)
    return [lon, lat]
