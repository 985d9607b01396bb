"""
Purpose: Service catalog lookup (skill category -> service definition).
What it does:
Maps the category a booking asks for ("plumbing") to the service that is
actually sold: display name, base price and whether it is currently offered.
The display name doubles as a skill alias when matching helpers.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Iterable


class UnknownService(LookupError):
    """Raised when a category has no active service behind it."""
    pass


@dataclass(frozen=True)
class ServiceDefinition:
    category: str
    display_name: str
    base_price: float
    active: bool = True

    @property
    def skill_aliases(self) -> frozenset:
        return frozenset({self.category, self.display_name})


def _key(category: str) -> str:
    return category.strip().casefold()


class ServiceCatalog:
    """
    In-memory catalog. Categories are matched case-insensitively.
    """
    def __init__(self, services: Iterable[ServiceDefinition] = ()):
        self._services: Dict[str, ServiceDefinition] = {}
        self._lock = threading.Lock()
        for service in services:
            self.add(service)

    def add(self, service: ServiceDefinition) -> None:
        with self._lock:
            self._services[_key(service.category)] = service

    def resolve_service(self, category: str) -> ServiceDefinition:
        if not category or not category.strip():
            raise UnknownService("Service category is required")

        service = self._services.get(_key(category))
        if service is None or not service.active:
            raise UnknownService(f"Service type '{category}' not found or inactive")
        return service
