from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret


DEFAULT_CATALOG_PATH = str(Path(__file__).resolve().parent.parent / "data" / "restaurants.json")


class Configuration(BaseModel):
    # Mapbox (live place search + postal geocoding)
    mapbox_access_token: Optional[str] = Field(default=None)
    mapbox_base_url: str = Field(default="https://api.mapbox.com")
    mapbox_timeout: int = Field(default=15)
    live_id_prefix: str = Field(default="mapbox-")

    # Viewport fetching
    live_search_radius_m: float = Field(default=10000.0)
    live_search_limit: int = Field(default=50)
    fetch_threshold_km: float = Field(default=2.0)
    fetch_debounce_ms: int = Field(default=500)
    postal_debounce_ms: int = Field(default=600)

    # Selection
    focus_ttl_sec: float = Field(default=10.0)
    focus_tolerance_deg: float = Field(default=0.0001)

    # Ranking / catalog
    top_picks_count: int = Field(default=3)
    catalog_path: str = Field(default=DEFAULT_CATALOG_PATH)
    catalog_limit: int = Field(default=100)

    # Fallback location (St. George, UT)
    default_lat: float = Field(default=37.0965)
    default_lng: float = Field(default=-113.5684)

    session_ttl_sec: int = Field(default=3600)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "mapbox_access_token": os.getenv("MAPBOX_ACCESS_TOKEN"),
            "mapbox_base_url": os.getenv("MAPBOX_BASE_URL"),
            "mapbox_timeout": os.getenv("MAPBOX_TIMEOUT"),
            "live_id_prefix": os.getenv("LIVE_ID_PREFIX"),
            "live_search_radius_m": os.getenv("LIVE_SEARCH_RADIUS_M"),
            "live_search_limit": os.getenv("LIVE_SEARCH_LIMIT"),
            "fetch_threshold_km": os.getenv("FETCH_THRESHOLD_KM"),
            "fetch_debounce_ms": os.getenv("FETCH_DEBOUNCE_MS"),
            "postal_debounce_ms": os.getenv("POSTAL_DEBOUNCE_MS"),
            "focus_ttl_sec": os.getenv("FOCUS_TTL_SEC"),
            "focus_tolerance_deg": os.getenv("FOCUS_TOLERANCE_DEG"),
            "top_picks_count": os.getenv("TOP_PICKS_COUNT"),
            "catalog_path": os.getenv("CATALOG_PATH"),
            "catalog_limit": os.getenv("CATALOG_LIMIT"),
            "default_lat": os.getenv("DEFAULT_LAT"),
            "default_lng": os.getenv("DEFAULT_LNG"),
            "session_ttl_sec": os.getenv("SESSION_TTL_SEC"),
        }

        for k, v in env_map.items():
            if v is None:
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def require_mapbox(self) -> None:
        if not self.mapbox_access_token:
            raise ValueError("MAPBOX_ACCESS_TOKEN is required")

    @property
    def fetch_debounce_sec(self) -> float:
        return self.fetch_debounce_ms / 1000.0

    @property
    def postal_debounce_sec(self) -> float:
        return self.postal_debounce_ms / 1000.0

    def log_summary(self) -> str:
        return (
            "mapbox=%s base=%s timeout=%s radius_m=%.0f limit=%s threshold_km=%.1f debounce_ms=%s token=%s"
            % (
                bool(self.mapbox_access_token),
                self.mapbox_base_url,
                self.mapbox_timeout,
                self.live_search_radius_m,
                self.live_search_limit,
                self.fetch_threshold_km,
                self.fetch_debounce_ms,
                mask_secret(self.mapbox_access_token),
            )
        )
