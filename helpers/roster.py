"""
Purpose: Load and generate helper rosters (CSV <-> Helper objects).
What it does:
- load_roster: reads a roster CSV with pandas and builds Helper snapshots
- generate_mock_roster: scatters helpers around a city centre with numpy,
  for simulations and load tests

Expected CSV columns:
helper_id, lat, lon, skills (";"-separated), rating, online, travel_mode
(name and phone are optional).
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from routing.geo import LatLon, TRAVEL_SPEEDS_KMH

from .models import Helper

REQUIRED_COLUMNS = ("helper_id", "lat", "lon", "skills")

DEFAULT_SKILLS = ("plumbing", "electrical", "cleaning", "carpentry", "painting", "gardening")


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "online", "available")
    return bool(value)


def load_roster(path: Union[str, Path]) -> List[Helper]:
    df = pd.read_csv(path)

    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise ValueError(f"Roster {path} is missing columns: {', '.join(missing)}")

    helpers = []
    for _, row in df.iterrows():
        rating = row.get("rating", 0.0)
        online = row.get("online", True)
        travel_mode = row.get("travel_mode", "bike")

        helpers.append(
            Helper.new(
                helper_id=str(row["helper_id"]),
                lat=float(row["lat"]),
                lon=float(row["lon"]),
                skills=str(row["skills"]).split(";"),
                rating=0.0 if pd.isna(rating) else float(rating),
                online=True if pd.isna(online) else _as_bool(online),
                name=None if pd.isna(row.get("name")) else str(row.get("name")),
                phone=None if pd.isna(row.get("phone")) else str(row.get("phone")),
                travel_mode="bike" if pd.isna(travel_mode) else str(travel_mode),
            )
        )
    return helpers


def generate_mock_roster(
    count: int = 100,
    center: LatLon = (28.6139, 77.2090),
    spread_degrees: float = 0.15,
    skills: Sequence[str] = DEFAULT_SKILLS,
    online_ratio: float = 0.8,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """
    Scatter `count` helpers uniformly in a square of +/- spread/2 degrees
    around center (0.15 degrees is roughly +/- 8 km).
    """
    rng = np.random.default_rng(seed)
    base_lat, base_lon = center

    lats = base_lat + rng.uniform(-0.5, 0.5, count) * spread_degrees
    lons = base_lon + rng.uniform(-0.5, 0.5, count) * spread_degrees
    ratings = np.round(rng.uniform(3.0, 5.0, count), 1)
    online = rng.random(count) < online_ratio
    modes = rng.choice(sorted(TRAVEL_SPEEDS_KMH), count)

    skill_sets = []
    for _ in range(count):
        picked = rng.choice(skills, size=rng.integers(1, min(3, len(skills)) + 1), replace=False)
        skill_sets.append(";".join(sorted(picked)))

    return pd.DataFrame(
        {
            "helper_id": [f"HLP-{str(i + 1).zfill(3)}" for i in range(count)],
            "lat": np.round(lats, 6),
            "lon": np.round(lons, 6),
            "skills": skill_sets,
            "rating": ratings,
            "online": online,
            "travel_mode": modes,
        }
    )
