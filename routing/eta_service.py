#Purpose: ETA estimation policy.
#Converts a helper -> booking leg into "arrives in X minutes", used by:
#requester-facing assignment notifications
#runner-up candidates shown alongside the chosen helper
#Uses the OSRM road network when a client is configured and falls back to
#the straight-line speed table when OSRM is unavailable.

from __future__ import annotations

import logging
import math
from typing import Optional

import requests

from .geo import LatLon, distance, estimate_arrival
from .osrm_client import OSRMClient, OSRMError

logger = logging.getLogger(__name__)


class EtaService:
    def __init__(self, osrm_client: Optional[OSRMClient] = None, default_mode: str = "bike"):
        self.osrm_client = osrm_client
        self.default_mode = default_mode

    def estimate_minutes(self, origin: LatLon, destination: LatLon, mode: Optional[str] = None) -> int:
        """
        Minutes for a helper at `origin` to reach `destination`.
        """
        if self.osrm_client is not None:
            try:
                route = self.osrm_client.compute_route([origin, destination])
                return math.ceil(route["duration"] / 60)
            except (OSRMError, requests.RequestException) as exc:
                logger.warning("OSRM ETA lookup failed, using speed table: %s", exc)

        return estimate_arrival(distance(origin, destination), mode or self.default_mode)
