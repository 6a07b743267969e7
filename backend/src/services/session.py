from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from models import Coordinates, Restaurant, RestaurantRecommendation
from services.filters import apply_overrides, filter_by_zip, filter_within_bounds, sort_by_distance
from services.merger import merge_sources
from services.selection import ResolvedTarget, SelectionSynchronizer
from services.viewport import ViewportFetchController


@dataclass(frozen=True)
class FocusInstruction:
    """Fly-to command for the map surface."""

    restaurant_id: str
    requested_id: str
    coordinates: Coordinates
    filters_cleared: bool = False


@dataclass
class MapSession:
    controller: ViewportFetchController
    selection: SelectionSynchronizer
    persisted: List[Restaurant] = field(default_factory=list)
    zip_filter: str = ""
    origin: Optional[Coordinates] = None
    recommendations: List[RestaurantRecommendation] = field(default_factory=list)
    # (min_lng, min_lat, max_lng, max_lat) of the rendered map, None until reported
    bounds: Optional[Tuple[float, float, float, float]] = None

    def combined(self) -> List[Restaurant]:
        return merge_sources(self.persisted, self.controller.live_results)

    def filtered(self) -> List[Restaurant]:
        items = filter_by_zip(self.combined(), self.zip_filter)
        return sort_by_distance(items, self.origin)

    def update_bounds(self, bounds: Optional[Tuple[float, float, float, float]]) -> List[Restaurant]:
        """Record the map viewport bounds and return the list they produce."""
        if bounds is not None:
            min_lng, min_lat, max_lng, max_lat = bounds
            if min_lng > max_lng or min_lat > max_lat:
                raise ValueError("bounds must be (min_lng, min_lat, max_lng, max_lat)")
        self.bounds = bounds
        return self.visible()

    def visible(self) -> List[Restaurant]:
        """List panel contents: filtered items inside the map bounds plus any force-included focus target."""
        filtered = self.filtered()
        self.selection.confirm_visible(filtered)
        if self.bounds is not None:
            filtered = filter_within_bounds(filtered, self.bounds)
        return apply_overrides(filtered, self.selection.overrides)

    def focus_restaurant(self, restaurant_id: str) -> Optional[FocusInstruction]:
        """Resolve ``restaurant_id`` to a fly-to instruction; None when it is unknown."""
        if not restaurant_id:
            return None
        known = [
            [rec.restaurant for rec in self.recommendations],
            self.persisted,
            list(self.controller.live_results),
        ]
        result = self.selection.focus(restaurant_id, self.filtered(), known)
        if not isinstance(result, ResolvedTarget):
            return None
        cleared = False
        if result.forced_visible and self.zip_filter:
            self.zip_filter = ""
            cleared = True
        return FocusInstruction(
            restaurant_id=result.id,
            requested_id=result.requested_id,
            coordinates=result.restaurant.coordinates,
            filters_cleared=cleared,
        )


class MapSessionManager:
    """Simple in-memory map session registry."""

    def __init__(self, factory: Callable[[], MapSession], ttl_sec: int = 3600) -> None:
        self._factory = factory
        self._sessions: Dict[str, MapSession] = {}
        self._last_access: Dict[str, float] = {}
        self.ttl_sec = ttl_sec

    def get(self, session_id: str) -> MapSession:
        self._cleanup()
        session = self._sessions.get(session_id)
        if session is None:
            session = self._factory()
            self._sessions[session_id] = session
            logger.debug("created map session {}", session_id)
        self._last_access[session_id] = time.time()
        return session

    def reset(self, session_id: str) -> None:
        """Drop a session and cancel its pending timers."""
        session = self._sessions.pop(session_id, None)
        self._last_access.pop(session_id, None)
        if session is not None:
            session.controller.close()

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def _cleanup(self) -> None:
        """Remove expired sessions."""
        now = time.time()
        expired = [
            sid for sid, last in self._last_access.items()
            if now - last > self.ttl_sec
        ]
        for sid in expired:
            self.reset(sid)
