#Purpose: Thin HTTP adapter for an OSRM routing server.
#Used only for road-network travel times (helper -> booking location).
#Knows about:
#OSRM's lon,lat ordering and /route/v1/{profile} URLs
#request timeouts and OSRM error codes
#Knows nothing about helpers, bookings or ranking.


import os
from typing import Dict, List, Optional

import requests
from dotenv import load_dotenv

from .geo import LatLon

# OSRM_BASE_URL can live in a .env file, e.g.
# OSRM_BASE_URL=http://router.project-osrm.org
load_dotenv()


class OSRMError(Exception):
    """Raised when OSRM answers with an error or garbage."""
    pass


class OSRMClient:
    """
    Route lookups against one OSRM profile (driving, walking, cycling).
    Callers pass (lat, lon) pairs and get metres / seconds back.
    """
    def __init__(self, profile: str = "driving", timeout: int = 5, base_url: Optional[str] = None):
        self.base_url = base_url or os.getenv("OSRM_BASE_URL")
        self.timeout = timeout  # seconds
        self.profile = profile

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Set OSRM_BASE_URL in the environment or .env file.")

        self.base_url = self.base_url.rstrip("/")

    def format_coordinates(self, points: List[LatLon]) -> str:
        # OSRM wants lon,lat;lon,lat
        return ";".join(f"{lon},{lat}" for lat, lon in points)

    def compute_route(self, points: List[LatLon]) -> Dict[str, float]:
        """
        Fastest route through `points` in order.
        Returns {"distance": metres, "duration": seconds}.

        Network failures surface as requests.RequestException; anything OSRM
        itself rejects raises OSRMError.
        """
        if len(points) < 2:
            raise ValueError("At least two points are required to compute a route.")

        url = f"{self.base_url}/route/v1/{self.profile}/{self.format_coordinates(points)}"

        try:
            response = requests.get(url, params={"overview": "false"}, timeout=self.timeout)
            data = response.json()
        except ValueError as exc:
            raise OSRMError(f"OSRM returned a non-JSON response: {exc}") from exc

        if not isinstance(data, dict):
            raise OSRMError(f"OSRM returned an unexpected body: {data!r}")
        if data.get("code") != "Ok" or not data.get("routes"):
            raise OSRMError(f"OSRM error: {data.get('message', data.get('code', 'Unknown error'))}")

        try:
            best = data["routes"][0]
            return {"distance": float(best["distance"]), "duration": float(best["duration"])}
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise OSRMError(f"OSRM route is missing distance/duration: {exc}") from exc
