from __future__ import annotations

import time
import urllib.parse
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import requests
from loguru import logger

from config import Configuration
from models import Coordinates, LiveSearchError, Restaurant
from services.normalizer import normalize_live


MAX_RESULTS_PER_REQUEST = 25


class MapboxError(LiveSearchError):
    pass


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


class MapboxClient:
    """Live place search and postal geocoding against the Mapbox APIs."""

    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self.base = cfg.mapbox_base_url.rstrip("/")
        self.session = requests.Session()
        self._cache_ttl = 60 * 30  # 30 minutes
        self._cache_max = 128
        self._geocode_cache: OrderedDict[str, Tuple[float, Optional[Coordinates]]] = OrderedDict()
        self._places_cache: OrderedDict[str, Tuple[float, List[Restaurant]]] = OrderedDict()

    def _cache_get(self, cache: OrderedDict[str, Tuple[float, Any]], key: str):  # type: ignore[valid-type]
        entry = cache.get(key)
        if not entry:
            return None
        ts, value = entry
        if time.time() - ts > self._cache_ttl:
            cache.pop(key, None)
            return None
        cache.move_to_end(key)
        return entry

    def _cache_set(self, cache: OrderedDict[str, Tuple[float, Any]], key: str, value):  # type: ignore[valid-type]
        if len(cache) >= self._cache_max:
            cache.popitem(last=False)
        cache[key] = (time.time(), value)

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        params = {**params, "access_token": self.cfg.mapbox_access_token}
        policy = _RetryPolicy()
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.mapbox_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise MapboxError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                snippet = resp.text[:300]
                raise MapboxError(f"upstream {resp.status_code}: {snippet}")

            if not resp.ok:
                snippet = resp.text[:300]
                raise MapboxError(f"upstream {resp.status_code}: {snippet}")

            try:
                return resp.json()
            except ValueError:
                raise MapboxError("invalid json response")

    @staticmethod
    def _features(payload: Any) -> List[Any]:
        features = payload.get("features") if isinstance(payload, dict) else None
        return features if isinstance(features, list) else []

    def search_near(self, center: Coordinates, radius_m: float = 10000.0, limit: int = 25) -> List[Restaurant]:
        """Restaurants around ``center``; results outside ``radius_m`` are dropped."""
        capped = max(1, min(limit, MAX_RESULTS_PER_REQUEST))
        key = f"near:{center.lat:.4f},{center.lng:.4f}:{radius_m:.0f}:{capped}"
        cached = self._cache_get(self._places_cache, key)
        if cached is not None:
            return list(cached[1])
        payload = self._get(
            "/search/searchbox/v1/category/restaurant",
            {
                "proximity": f"{center.lng},{center.lat}",
                "limit": capped,
                "language": "en",
            },
        )
        features = self._features(payload)
        radius_km = radius_m / 1000.0
        results: list[Restaurant] = []
        for feat in features:
            item = normalize_live(
                feat,
                id_prefix=self.cfg.live_id_prefix,
                center=center,
                radius_km=radius_km,
            )
            if item is not None:
                results.append(item)
        logger.debug("mapbox search_near center={} features={} kept={}", center, len(features), len(results))
        self._cache_set(self._places_cache, key, list(results))
        return results

    def resolve(self, postal_code: str) -> Optional[Coordinates]:
        """Geocode a postal code to its center point, or None when unknown."""
        clean = (postal_code or "").strip()
        if len(clean) < 3:
            return None
        key = f"postcode:{clean.lower()}"
        cached = self._cache_get(self._geocode_cache, key)
        if cached is not None:
            return cached[1]
        query = urllib.parse.quote(f"{clean} USA")
        payload = self._get(
            f"/geocoding/v5/mapbox.places/{query}.json",
            {"types": "postcode", "limit": 1},
        )
        features = self._features(payload)
        if not features:
            logger.info("no geocode result for postal code {}", clean)
            self._cache_set(self._geocode_cache, key, None)
            return None
        first = features[0] if isinstance(features[0], dict) else {}
        center = first.get("center") or []
        result: Optional[Coordinates] = None
        if isinstance(center, list) and len(center) >= 2:
            try:
                result = Coordinates(lat=float(center[1]), lng=float(center[0]))
            except (TypeError, ValueError):
                result = None
        self._cache_set(self._geocode_cache, key, result)
        return result
