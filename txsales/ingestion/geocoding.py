"""
City-level geocoding

Approximate coordinates from a static table of Texas city centroids. Known
cities get a small jitter that moves the city pin off the exact centroid; the
jitter is drawn once per city and reused for the rest of the process, so every
establishment in a city shares one point. Unknown cities fall back to the
state centroid.
"""

import random
from typing import Dict, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

Coordinates = Tuple[float, float]

TEXAS_CENTROID: Coordinates = (31.9686, -99.9018)
MAX_JITTER_DEGREES = 0.015

TEXAS_CITY_COORDS: Dict[str, Coordinates] = {
    "AUSTIN": (30.2672, -97.7431),
    "HOUSTON": (29.7604, -95.3698),
    "DALLAS": (32.7767, -96.7970),
    "SAN ANTONIO": (29.4241, -98.4936),
    "FORT WORTH": (32.7555, -97.3308),
    "EL PASO": (31.7619, -106.4850),
    "ARLINGTON": (32.7357, -97.1081),
    "CORPUS CHRISTI": (27.8006, -97.3964),
    "PLANO": (33.0198, -96.6989),
    "LUBBOCK": (33.5779, -101.8552),
    "LAREDO": (27.5306, -99.4803),
    "IRVING": (32.8140, -96.9489),
    "GARLAND": (32.9126, -96.6389),
    "FRISCO": (33.1507, -96.8236),
    "AMARILLO": (35.2220, -101.8313),
}


class CityGeocoder:
    """
    Resolve a city name to approximate coordinates.

    Example:
        geocoder = CityGeocoder()
        lat, lng = geocoder.resolve("Austin")
    """

    def __init__(
        self,
        city_coords: Optional[Dict[str, Coordinates]] = None,
        seed: Optional[int] = None,
    ):
        self._city_coords = city_coords or TEXAS_CITY_COORDS
        self._random = random.Random(seed)
        self._cache: Dict[str, Coordinates] = {}

    def resolve(self, city: str) -> Coordinates:
        """Return jittered city coordinates, or the state centroid on a miss"""
        key = (city or "").strip().upper()

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        base = self._city_coords.get(key)
        if base is None:
            return TEXAS_CENTROID

        coords = (
            base[0] + self._random.uniform(-MAX_JITTER_DEGREES, MAX_JITTER_DEGREES),
            base[1] + self._random.uniform(-MAX_JITTER_DEGREES, MAX_JITTER_DEGREES),
        )
        self._cache[key] = coords
        logger.debug("Resolved city coordinates", city=key, lat=coords[0], lng=coords[1])
        return coords

    @property
    def cached_cities(self) -> int:
        return len(self._cache)
