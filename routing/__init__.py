#Marks routing as a package.
#Re-exports the public APIs (geo math, OSRMClient, EtaService) so other
#modules import from routing without knowing internal file names.
#No business logic.

from .geo import (
    BoundingBox,
    InvalidInput,
    LatLon,
    bounding_box,
    distance,
    estimate_arrival,
    from_geojson,
    to_geojson,
    within_radius,
)
from .osrm_client import OSRMClient, OSRMError
from .eta_service import EtaService

__all__ = [
    "BoundingBox",
    "InvalidInput",
    "LatLon",
    "bounding_box",
    "distance",
    "estimate_arrival",
    "from_geojson",
    "to_geojson",
    "within_radius",
    "OSRMClient",
    "OSRMError",
    "EtaService",
]
