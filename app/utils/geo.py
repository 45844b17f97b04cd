"""
Geographic utilities for report location handling.
"""

import math
from typing import Any, Optional, Tuple

EARTH_RADIUS_METERS = 6371000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate great-circle distance in meters between two points using the Haversine formula."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)
    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def extract_coordinates(location: Any) -> Optional[Tuple[float, float]]:
    """
    Pull (latitude, longitude) out of a stored location dict.

    Returns None when the location is missing, non-numeric, or out of range,
    so callers can skip the record instead of failing.
    """
    if not isinstance(location, dict):
        return None

    lat = location.get("latitude")
    lon = location.get("longitude")
    if isinstance(lat, bool) or isinstance(lon, bool):
        return None

    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return None

    if math.isnan(lat) or math.isnan(lon):
        return None
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return None

    return lat, lon
