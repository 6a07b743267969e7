from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from models import Coordinates, Restaurant, UserRestaurantState
from services.geo import distance_km, in_bbox


STATUS_ALL = "all"
STATUS_WANT_TO_GO = "wantToGo"
STATUS_HAS_BEEN = "hasBeen"


def filter_by_zip(restaurants: Iterable[Restaurant], zip_code: Optional[str]) -> List[Restaurant]:
    needle = (zip_code or "").strip().lower()
    if not needle:
        return list(restaurants)
    return [r for r in restaurants if needle in (r.address or "").lower()]


def filter_by_status(
    restaurants: Iterable[Restaurant],
    states: Dict[str, UserRestaurantState],
    status: str = STATUS_ALL,
) -> List[Restaurant]:
    if status == STATUS_ALL:
        return list(restaurants)
    out: list[Restaurant] = []
    for r in restaurants:
        state = states.get(r.id)
        if status == STATUS_WANT_TO_GO and not (state and state.want_to_go):
            continue
        if status == STATUS_HAS_BEEN and not (state and state.has_been):
            continue
        out.append(r)
    return out


def filter_within_radius(restaurants: Iterable[Restaurant], center: Coordinates, radius_km: float) -> List[Restaurant]:
    return [r for r in restaurants if distance_km(center, r.coordinates) <= radius_km]


def filter_within_bounds(
    restaurants: Iterable[Restaurant], bbox: Tuple[float, float, float, float]
) -> List[Restaurant]:
    return [r for r in restaurants if in_bbox(r.coordinates, bbox)]


def sort_by_distance(restaurants: Iterable[Restaurant], origin: Optional[Coordinates]) -> List[Restaurant]:
    items = list(restaurants)
    if origin is None:
        return items
    return sorted(items, key=lambda r: distance_km(origin, r.coordinates))


def apply_overrides(filtered: Iterable[Restaurant], overrides: Iterable[Restaurant]) -> List[Restaurant]:
    """Render-time merge of force-included items; the filtered list itself is not touched."""
    out = list(filtered)
    present = {r.id for r in out}
    for item in overrides:
        if item.id in present:
            continue
        present.add(item.id)
        out.append(item)
    return out
