"""
Helpers domain package.

Public API:
- Domain model: Helper
- Live state: HelperRegistry, AlreadyReservedError, HelperNotFound
- Rosters: load_roster, generate_mock_roster
"""
from .models import Helper, normalize_skills
from .registry import AlreadyReservedError, HelperNotFound, HelperRegistry
from .roster import generate_mock_roster, load_roster

__all__ = [
    "Helper",
    "normalize_skills",
    "HelperRegistry",
    "AlreadyReservedError",
    "HelperNotFound",
    "load_roster",
    "generate_mock_roster",
]
