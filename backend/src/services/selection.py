from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Union

from loguru import logger

from models import Restaurant
from services.geo import near_same_point


MATCH_ID = "id"
MATCH_COORDINATES = "coordinates"
MATCH_OVERRIDE = "override"


@dataclass(frozen=True)
class ResolvedTarget:
    restaurant: Restaurant
    requested_id: str
    matched_by: str
    # True when the item was hidden by the active filters and had to be injected
    forced_visible: bool = False

    @property
    def id(self) -> str:
        """Id to animate/highlight; may differ from ``requested_id``."""
        return self.restaurant.id


@dataclass(frozen=True)
class NotFound:
    requested_id: str


FocusResult = Union[ResolvedTarget, NotFound]


def _find_by_id(items: Iterable[Restaurant], restaurant_id: str) -> Optional[Restaurant]:
    for item in items:
        if item.id == restaurant_id:
            return item
    return None


class SelectionSynchronizer:
    """Resolves a selection against the visible list and owns the force-include override.

    A forced override is recorded as ``focused_id`` and expires after
    ``ttl_sec`` unless it is confirmed visible first.
    """

    def __init__(
        self,
        *,
        ttl_sec: float = 10.0,
        tolerance_deg: float = 0.0001,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_sec = ttl_sec
        self.tolerance_deg = tolerance_deg
        self.clock = clock
        self._focused: Optional[Restaurant] = None
        self._focused_at: float = 0.0

    def _expire(self) -> None:
        if self._focused is None:
            return
        if self.clock() - self._focused_at >= self.ttl_sec:
            logger.debug("focus override {} expired after {}s", self._focused.id, self.ttl_sec)
            self._focused = None

    @property
    def focused_id(self) -> Optional[str]:
        self._expire()
        return self._focused.id if self._focused is not None else None

    @property
    def overrides(self) -> List[Restaurant]:
        """Items to merge into the rendered list on top of the filtered ones."""
        self._expire()
        return [self._focused] if self._focused is not None else []

    def clear(self) -> None:
        self._focused = None

    def focus(
        self,
        restaurant_id: str,
        visible: Sequence[Restaurant],
        known_sets: Sequence[Iterable[Restaurant]] = (),
    ) -> FocusResult:
        direct = _find_by_id(visible, restaurant_id)
        if direct is not None:
            return self._resolved(direct, restaurant_id, MATCH_ID)

        target: Optional[Restaurant] = None
        for collection in known_sets:
            target = _find_by_id(collection, restaurant_id)
            if target is not None:
                break
        if target is None:
            logger.debug("focus target {} not found in any known collection", restaurant_id)
            return NotFound(requested_id=restaurant_id)

        # same physical place may carry a different id in the other source
        for item in visible:
            if near_same_point(item.coordinates, target.coordinates, self.tolerance_deg):
                return self._resolved(item, restaurant_id, MATCH_COORDINATES)

        self._focused = target
        self._focused_at = self.clock()
        logger.debug("focus target {} hidden by filters; forcing visible", target.id)
        return ResolvedTarget(
            restaurant=target,
            requested_id=restaurant_id,
            matched_by=MATCH_OVERRIDE,
            forced_visible=True,
        )

    def confirm_visible(self, visible: Sequence[Restaurant]) -> Optional[ResolvedTarget]:
        """Resolve the override once it appears in the filtered list (``visible`` excludes overrides)."""
        self._expire()
        if self._focused is None:
            return None
        item = _find_by_id(visible, self._focused.id)
        if item is None:
            return None
        self._focused = None
        return ResolvedTarget(restaurant=item, requested_id=item.id, matched_by=MATCH_ID)

    def _resolved(self, item: Restaurant, requested_id: str, matched_by: str) -> ResolvedTarget:
        if self._focused is not None and self._focused.id == item.id:
            self._focused = None
        return ResolvedTarget(restaurant=item, requested_id=requested_id, matched_by=matched_by)
