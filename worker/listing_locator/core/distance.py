"""Great-circle distance helpers."""

import math

from listing_locator.core.models import Coordinate

EARTH_RADIUS_KM = 6371.0


def distance(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in kilometres on a spherical earth."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))
