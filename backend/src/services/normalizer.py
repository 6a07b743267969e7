"""Convert raw persisted-store documents and live search features into ``Restaurant``."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from loguru import logger

from models import (
    ATMOSPHERES,
    MEETING_TYPES,
    SERVICE_SPEEDS,
    Coordinates,
    PriceRange,
    Provenance,
    RatingSummary,
    Restaurant,
    RestaurantAttributes,
)
from services.geo import distance_km
from utils import finite_float


WALKABLE_KM = 1.0


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coordinates(lat: Any, lng: Any) -> Optional[Coordinates]:
    lat_f = finite_float(lat)
    lng_f = finite_float(lng)
    if lat_f is None or lng_f is None:
        return None
    return Coordinates(lat=lat_f, lng=lng_f)


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [s for s in (_clean_str(v) for v in value) if s]


def _price_range(raw: Any) -> Optional[PriceRange]:
    if not isinstance(raw, dict):
        return None
    low = finite_float(raw.get("min"))
    high = finite_float(raw.get("max"))
    if low is None or high is None:
        return None
    if low > high:
        low, high = high, low
    return PriceRange(min=low, max=high)


def _rating(raw: Any) -> Optional[RatingSummary]:
    if not isinstance(raw, dict):
        return None
    average = finite_float(raw.get("average"))
    if average is None:
        return None
    count = finite_float(raw.get("count"))
    return RatingSummary(average=average, count=int(count) if count is not None else 0)


def _attributes(raw: Any) -> Optional[RestaurantAttributes]:
    if not isinstance(raw, dict) or not raw:
        return None
    quietness = finite_float(raw.get("quietness"))
    speed = raw.get("serviceSpeed")
    atmosphere = raw.get("atmosphere")
    booths = raw.get("privateBooths")
    walkable = raw.get("walkableDistance")
    return RestaurantAttributes(
        quietness=int(min(max(quietness, 0), 100)) if quietness is not None else None,
        service_speed=speed if speed in SERVICE_SPEEDS else None,
        atmosphere=atmosphere if atmosphere in ATMOSPHERES else None,
        private_booths=booths if isinstance(booths, bool) else None,
        walkable_distance=walkable if isinstance(walkable, bool) else None,
        ideal_meeting_types=[m for m in _str_list(raw.get("idealMeetingTypes")) if m in MEETING_TYPES],
    )


def normalize_persisted(raw: Any) -> Optional[Restaurant]:
    """Map a persisted-store document to a ``Restaurant``; ``None`` when unusable."""
    if not isinstance(raw, dict):
        logger.debug("dropping persisted record: not a mapping ({})", type(raw).__name__)
        return None
    record_id = _clean_str(raw.get("id"))
    name = _clean_str(raw.get("name"))
    coords_raw = raw.get("coordinates") or {}
    coords = _coordinates(coords_raw.get("lat"), coords_raw.get("lng")) if isinstance(coords_raw, dict) else None
    if not record_id or not name or coords is None:
        logger.debug("dropping persisted record id={} name={}: missing id/name/coordinates", record_id, name)
        return None

    return Restaurant(
        id=record_id,
        name=name,
        address=_clean_str(raw.get("address")) or "",
        coordinates=coords,
        cuisine_type=_str_list(raw.get("cuisineType")),
        provenance=Provenance.PERSISTED,
        price_range=_price_range(raw.get("priceRange")),
        rating=_rating(raw.get("rating")),
        attributes=_attributes(raw.get("attributes")),
        image_url=_clean_str(raw.get("imageUrl")),
        website=_clean_str(raw.get("website")),
        phone=_clean_str(raw.get("phone")),
    )


def _mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _live_address(props: dict) -> str:
    address = props.get("full_address") or props.get("place_formatted") or props.get("address")
    if address:
        return str(address)
    context = _mapping(props.get("context"))
    place = _clean_str(_mapping(context.get("place")).get("name")) or ""
    region = _clean_str(_mapping(context.get("region")).get("region_code")) or ""
    return f"{place}, {region}".strip(" ,")


def normalize_live(
    feature: Any,
    *,
    id_prefix: str = "mapbox-",
    center: Optional[Coordinates] = None,
    radius_km: Optional[float] = None,
) -> Optional[Restaurant]:
    """Map a place-search feature to a ``Restaurant``.

    With a known ``center`` the result is dropped when it lies outside
    ``radius_km`` and flagged walkable when it is within 1 km.
    """
    if not isinstance(feature, dict):
        logger.debug("dropping live feature: not a mapping ({})", type(feature).__name__)
        return None
    props = _mapping(feature.get("properties"))
    name = _clean_str(props.get("name_preferred") or props.get("name"))

    coords = None
    geom = _mapping(feature.get("geometry"))
    pair = geom.get("coordinates")
    if isinstance(pair, (list, tuple)) and len(pair) >= 2:
        coords = _coordinates(pair[1], pair[0])  # [lng, lat]
    if coords is None:
        alt = _mapping(props.get("coordinates"))
        coords = _coordinates(alt.get("latitude"), alt.get("longitude"))

    source_id = _clean_str(props.get("mapbox_id") or feature.get("id"))
    if not name or coords is None or not source_id:
        logger.debug("dropping live feature id={} name={}: missing id/name/coordinates", source_id, name)
        return None

    attributes = None
    if center is not None:
        dist = distance_km(center, coords)
        if radius_km is not None and dist > radius_km:
            return None
        if dist < WALKABLE_KM:
            attributes = RestaurantAttributes(walkable_distance=True)

    categories = _str_list(props.get("poi_category"))
    return Restaurant(
        id=f"{id_prefix}{source_id}",
        name=name,
        address=_live_address(props),
        coordinates=coords,
        cuisine_type=categories[:3] if categories else ["Restaurant"],
        provenance=Provenance.LIVE,
        attributes=attributes,
    )


def normalize_many(records: Iterable[Any], *, live: bool = False, **kwargs: Any) -> List[Restaurant]:
    """Normalize a batch, silently skipping rejected records."""
    out: list[Restaurant] = []
    dropped = 0
    for raw in records:
        item = normalize_live(raw, **kwargs) if live else normalize_persisted(raw)
        if item is None:
            dropped += 1
            continue
        out.append(item)
    if dropped:
        logger.debug("normalize_many kept={} dropped={} live={}", len(out), dropped, live)
    return out
