from __future__ import annotations

import math
from typing import Tuple

from models import Coordinates
from utils import haversine_km


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Haversine distance between two WGS84 points, in kilometers."""
    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def expand_bbox_from_center(lng: float, lat: float, km: float) -> Tuple[float, float, float, float]:
    """Create a rectangular bbox around (lng,lat) by ±km in both axes.

    Returns (min_lng, min_lat, max_lng, max_lat)
    """
    # degrees per km
    dlat = km / 110.574
    dlng = km / (111.320 * math.cos(math.radians(lat)) if math.cos(math.radians(lat)) != 0 else 1e-6)
    return (lng - dlng, lat - dlat, lng + dlng, lat + dlat)


def in_bbox(point: Coordinates, bbox: Tuple[float, float, float, float]) -> bool:
    min_lng, min_lat, max_lng, max_lat = bbox
    return min_lng <= point.lng <= max_lng and min_lat <= point.lat <= max_lat


def near_same_point(a: Coordinates, b: Coordinates, tolerance_deg: float = 0.0001) -> bool:
    """True when both axes differ by less than ``tolerance_deg`` (~11m at 1e-4)."""
    return abs(a.lat - b.lat) < tolerance_deg and abs(a.lng - b.lng) < tolerance_deg
