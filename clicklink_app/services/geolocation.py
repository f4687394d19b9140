"""
Geolocation collaborator.

The redirect pipeline never computes location itself. It asks a GeoLocator
for (country, city) and stores whatever comes back, which may be nothing.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from clicklink_app.config import Settings


@dataclass(frozen=True)
class GeoResult:
    country: Optional[str] = None
    city: Optional[str] = None


EMPTY_GEO_RESULT = GeoResult()


class GeoLocator(ABC):
    """Pluggable IP → location lookup"""

    @abstractmethod
    def locate(self, ip_address: Optional[str]) -> GeoResult:
        pass


class NullGeoLocator(GeoLocator):
    """Leaves country/city empty"""

    def locate(self, ip_address: Optional[str]) -> GeoResult:
        return EMPTY_GEO_RESULT


def create_geolocator(settings: Settings) -> GeoLocator:
    if settings.geolocation_backend == "null":
        return NullGeoLocator()
    raise ValueError(f"Unknown geolocation backend: {settings.geolocation_backend}")
