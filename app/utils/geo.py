"""Geo helpers - great-circle distance for proximity search and ETA."""

from math import radians, sin, cos, sqrt, atan2

EARTH_RADIUS_KM = 6371.0


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance between two points in kilometres."""
    dlat = radians(lat2 - lat1)
    dlng = radians(lng2 - lng1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def is_valid_coordinate(lat, lng) -> bool:
    """Latitude in [-90, 90], longitude in [-180, 180], both real numbers."""
    for value in (lat, lng):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
    return -90 <= lat <= 90 and -180 <= lng <= 180
