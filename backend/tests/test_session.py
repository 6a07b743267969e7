from __future__ import annotations

import time

import pytest

from models import Coordinates, Provenance, Restaurant, RestaurantRecommendation
from services.selection import SelectionSynchronizer
from services.session import MapSession, MapSessionManager
from services.viewport import ViewportFetchController


class _NoSearch:
    def search_near(self, center, radius_m, limit):
        return []


class _NullScheduler:
    def call_later(self, delay, callback):
        raise AssertionError("no timers expected")


def _r(rid, address="", lat=37.1, lng=-113.5, provenance=Provenance.PERSISTED):
    return Restaurant(id=rid, name=rid, address=address, coordinates=Coordinates(lat=lat, lng=lng), provenance=provenance)


def _session(**kw) -> MapSession:
    controller = ViewportFetchController(_NoSearch(), scheduler=_NullScheduler())
    return MapSession(controller=controller, selection=SelectionSynchronizer(), **kw)


def test_visible_applies_zip_and_distance_order() -> None:
    session = _session(
        persisted=[
            _r("far", "1 A St, UT 84770", lat=37.3),
            _r("near", "2 B St, UT 84770", lat=37.1),
            _r("other", "3 C St, UT 84738"),
        ],
        zip_filter="84770",
        origin=Coordinates(lat=37.1, lng=-113.5),
    )
    assert [r.id for r in session.visible()] == ["near", "far"]


def test_focus_hidden_item_clears_zip_and_stays_visible() -> None:
    hidden = _r("db2", "9 Elm, Ivins, UT 84738", lat=37.2)
    session = _session(persisted=[_r("db1", "1 Main, UT 84770"), hidden], zip_filter="84770")

    instruction = session.focus_restaurant("db2")

    assert instruction is not None
    assert instruction.restaurant_id == "db2"
    assert instruction.filters_cleared is True
    assert session.zip_filter == ""
    assert "db2" in [r.id for r in session.visible()]
    # visible once filters are cleared, so the override is released
    assert session.selection.focused_id is None


def test_focus_recommendation_resolves_to_live_id() -> None:
    session = _session(persisted=[])
    session.controller._live = [_r("live-9", lat=37.10001, lng=-113.50002, provenance=Provenance.LIVE)]  # type: ignore[attr-defined]
    db = _r("db1", lat=37.1000, lng=-113.5000)
    session.recommendations = [RestaurantRecommendation(restaurant=db, match_score=80)]

    instruction = session.focus_restaurant("db1")

    assert instruction is not None
    assert instruction.requested_id == "db1"
    assert instruction.restaurant_id == "live-9"
    assert instruction.filters_cleared is False


def test_focus_unknown_returns_none() -> None:
    session = _session(persisted=[_r("db1")])
    assert session.focus_restaurant("ghost") is None
    assert session.focus_restaurant("") is None


def test_manager_creates_and_resets() -> None:
    mgr = MapSessionManager(_session, ttl_sec=1000)
    first = mgr.get("sess-1")
    assert mgr.get("sess-1") is first
    assert "sess-1" in mgr

    mgr.reset("sess-1")
    assert "sess-1" not in mgr
    assert mgr.get("sess-1") is not first


def test_cleanup_by_ttl() -> None:
    mgr = MapSessionManager(_session, ttl_sec=1)
    stale = mgr.get("sess-ttl")

    # force timestamp to be stale
    mgr._last_access["sess-ttl"] = time.time() - 10  # type: ignore[attr-defined]
    fresh = mgr.get("sess-ttl")
    assert fresh is not stale
    assert stale.controller.on_center_change(Coordinates(lat=1.0, lng=1.0)) is False

def test_bounds_limit_list_but_keep_forced_target() -> None:
    inside = _r("inside", lat=37.10, lng=-113.50)
    outside = _r("outside", lat=37.40, lng=-113.90)
    session = _session(persisted=[inside, outside])

    assert [r.id for r in session.update_bounds((-113.6, 37.0, -113.4, 37.2))] == ["inside"]
    assert session.bounds == (-113.6, 37.0, -113.4, 37.2)

    # only known through recommendations, so it is injected as an override
    rec_only = _r("rec-only", lat=37.45, lng=-113.95)
    session.recommendations = [RestaurantRecommendation(restaurant=rec_only, match_score=70)]
    assert session.focus_restaurant("rec-only") is not None
    assert [r.id for r in session.visible()] == ["inside", "rec-only"]

    session.update_bounds(None)
    assert {r.id for r in session.visible()} == {"inside", "outside", "rec-only"}


def test_bounds_must_be_ordered() -> None:
    session = _session(persisted=[_r("a")])
    with pytest.raises(ValueError):
        session.update_bounds((-113.4, 37.0, -113.6, 37.2))
    assert session.bounds is None
