"""Debounced, threshold-gated live refetching as the map viewport moves.

The controller runs on a single asyncio loop. A center-changed event that is
at least ``threshold_km`` from the last fetched center (re)starts one debounce
timer; when it fires, one live search runs for that center and its results
are unioned into ``live_results`` by identity key. Only a postal-code jump
(``relocate``) clears the accumulated results.

Fetches run one at a time. A fired fetch still waiting for the previous one
is dropped when a newer fetch or a relocate has been issued in the meantime.

Timers come from an injected scheduler so tests can fire them by hand.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable, List, Optional, Protocol, Set, Tuple

from loguru import logger

from config import Configuration
from models import Coordinates, LiveSearchError, Restaurant
from services.geo import distance_km
from services.merger import union_by_identity


class FetchState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    FETCHING = "fetching"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LiveSearch(Protocol):
    def search_near(self, center: Coordinates, radius_m: float, limit: int) -> List[Restaurant]: ...


class Geocoder(Protocol):
    def resolve(self, postal_code: str) -> Optional[Coordinates]: ...


class AsyncioScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class ViewportFetchController:
    def __init__(
        self,
        search: LiveSearch,
        *,
        geocoder: Optional[Geocoder] = None,
        scheduler: Optional[Scheduler] = None,
        threshold_km: float = 2.0,
        debounce_sec: float = 0.5,
        postal_debounce_sec: float = 0.6,
        radius_m: float = 10000.0,
        limit: int = 50,
        on_update: Optional[Callable[[Tuple[Restaurant, ...]], None]] = None,
    ) -> None:
        self.search = search
        self.geocoder = geocoder
        self.scheduler: Scheduler = scheduler or AsyncioScheduler()
        self.threshold_km = threshold_km
        self.debounce_sec = debounce_sec
        self.postal_debounce_sec = postal_debounce_sec
        self.radius_m = radius_m
        self.limit = limit
        self.on_update = on_update

        self._live: List[Restaurant] = []
        self._last_fetched_center: Optional[Coordinates] = None
        self._timer: Optional[TimerHandle] = None
        self._postal_timer: Optional[TimerHandle] = None
        self._fetching = False
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        # bumped per fired debounce or relocate; queued fetches from older generations are skipped
        self._generation = 0
        self._closed = False

    @classmethod
    def from_config(
        cls,
        cfg: Configuration,
        search: LiveSearch,
        *,
        geocoder: Optional[Geocoder] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> "ViewportFetchController":
        return cls(
            search,
            geocoder=geocoder,
            scheduler=scheduler,
            threshold_km=cfg.fetch_threshold_km,
            debounce_sec=cfg.fetch_debounce_sec,
            postal_debounce_sec=cfg.postal_debounce_sec,
            radius_m=cfg.live_search_radius_m,
            limit=cfg.live_search_limit,
        )

    @property
    def state(self) -> FetchState:
        if self._fetching:
            return FetchState.FETCHING
        if self._timer is not None or self._postal_timer is not None:
            return FetchState.DEBOUNCING
        return FetchState.IDLE

    @property
    def last_fetched_center(self) -> Optional[Coordinates]:
        return self._last_fetched_center

    @property
    def live_results(self) -> Tuple[Restaurant, ...]:
        return tuple(self._live)

    def should_fetch(self, center: Coordinates) -> bool:
        last = self._last_fetched_center
        if last is None:
            return True
        return distance_km(last, center) >= self.threshold_km

    def on_center_change(self, center: Coordinates) -> bool:
        """Schedule a debounced fetch for ``center``; False when suppressed."""
        if self._closed:
            return False
        if not self.should_fetch(center):
            logger.debug("viewport move to {} below {} km threshold; skipping", center, self.threshold_km)
            return False
        self._cancel_timer()
        self._timer = self.scheduler.call_later(self.debounce_sec, lambda: self._fire(center))
        return True

    def lookup_postal_code(self, postal_code: str) -> bool:
        """Debounced postal-code jump; the newest input supersedes pending ones."""
        if self._closed:
            return False
        if self.geocoder is None:
            logger.warning("postal lookup requested without a geocoder")
            return False
        if self._postal_timer is not None:
            self._postal_timer.cancel()
            self._postal_timer = None
        code = (postal_code or "").strip()
        if not code:
            return False
        self._postal_timer = self.scheduler.call_later(self.postal_debounce_sec, lambda: self._fire_postal(code))
        return True

    async def jump_to_postal_code(self, postal_code: str) -> Optional[Coordinates]:
        if self.geocoder is None:
            return None
        try:
            center = await asyncio.to_thread(self.geocoder.resolve, postal_code)
        except LiveSearchError as exc:
            logger.warning("postal geocode failed for {}: {}", postal_code, exc)
            return None
        if center is None:
            logger.info("postal code {} did not resolve", postal_code)
            return None
        await self.relocate(center)
        return center

    async def relocate(self, center: Coordinates) -> bool:
        """Explicit jump: clear accumulated results and fetch immediately."""
        self._cancel_timer()
        self._generation += 1
        return await self._fetch(center, reset=True)

    async def wait_idle(self) -> None:
        while self._tasks:
            # failures are logged by _task_done
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Cancel pending timers; a fetch already in flight still completes."""
        self._closed = True
        self._cancel_timer()
        if self._postal_timer is not None:
            self._postal_timer.cancel()
            self._postal_timer = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, center: Coordinates) -> None:
        self._timer = None
        self._generation += 1
        self._spawn(self._fetch(center, generation=self._generation))

    def _fire_postal(self, postal_code: str) -> None:
        self._postal_timer = None
        self._spawn(self.jump_to_postal_code(postal_code))

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("viewport background task failed: {}", exc)

    async def _fetch(self, center: Coordinates, *, reset: bool = False, generation: Optional[int] = None) -> bool:
        # one request in flight per controller
        async with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug("skipping superseded fetch near {}", center)
                return False
            if reset:
                self._live = []
                self._last_fetched_center = None
            self._fetching = True
            try:
                results = await asyncio.to_thread(self.search.search_near, center, self.radius_m, self.limit)
            except LiveSearchError as exc:
                logger.warning("live search failed near {}: {}", center, exc)
                return False
            finally:
                self._fetching = False

            before = len(self._live)
            self._live = union_by_identity(self._live, results)
            self._last_fetched_center = center
            logger.debug(
                "live search near {} returned {} results, {} new, {} total",
                center,
                len(results),
                len(self._live) - before,
                len(self._live),
            )
        if self.on_update is not None:
            self.on_update(self.live_results)
        return True
