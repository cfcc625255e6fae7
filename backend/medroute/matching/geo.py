from __future__ import annotations

from math import asin, cos, radians, sin, sqrt
from typing import Any, Mapping, Optional, Tuple

EARTH_RADIUS_KM = 6371.0


def _coordinates(point: Any) -> Optional[Tuple[float, float]]:
    if point is None:
        return None
    if isinstance(point, Mapping):
        lat, lng = point.get("lat"), point.get("lng")
    else:
        lat, lng = getattr(point, "lat", None), getattr(point, "lng", None)
    if lat is None or lng is None:
        return None
    return float(lat), float(lng)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = radians(lat2 - lat1)
    d_lng = radians(lng2 - lng1)
    a = sin(d_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(1.0, a)))


def haversine_distance_km(a: Any, b: Any) -> Optional[float]:
    """Great-circle distance between two points, or ``None`` when either is unknown.

    Points may be mappings or objects exposing ``lat``/``lng`` in decimal degrees.
    """
    first = _coordinates(a)
    second = _coordinates(b)
    if first is None or second is None:
        return None
    return haversine_km(first[0], first[1], second[0], second[1])


def format_distance(distance_km: Optional[float]) -> str:
    if distance_km is None:
        return "N/A"
    return f"{distance_km:.2f}"


def distance_label(distance_km: Optional[float]) -> str:
    if distance_km is None:
        return "Locating..."
    if distance_km < 1:
        return f"{round(distance_km * 1000)} m"
    return f"{distance_km:.2f} km"


def estimate_eta_minutes(distance_km: Optional[float], speed_kmh: float = 40.0) -> Optional[int]:
    if distance_km is None or speed_kmh <= 0:
        return None
    return round(distance_km / speed_kmh * 60)


def format_eta(minutes: Optional[int]) -> str:
    if minutes is None:
        return "-"
    if minutes < 1:
        return "< 1 min"
    if minutes == 1:
        return "1 min"
    if minutes < 60:
        return f"{minutes} mins"
    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"
