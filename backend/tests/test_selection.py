from models import Coordinates, Provenance, Restaurant
from services.selection import (
    MATCH_COORDINATES,
    MATCH_ID,
    MATCH_OVERRIDE,
    NotFound,
    ResolvedTarget,
    SelectionSynchronizer,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _r(rid, lat=37.1, lng=-113.5, provenance=Provenance.PERSISTED):
    return Restaurant(id=rid, name=rid, address="", coordinates=Coordinates(lat=lat, lng=lng), provenance=provenance)


def test_exact_id_match() -> None:
    sync = SelectionSynchronizer()
    item = _r("db1")
    result = sync.focus("db1", [item])
    assert isinstance(result, ResolvedTarget)
    assert result.matched_by == MATCH_ID
    assert result.id == "db1"
    assert sync.focused_id is None


def test_recommendation_id_translated_by_coordinates() -> None:
    sync = SelectionSynchronizer()
    persisted = _r("db1", 37.1000, -113.5000)
    live = _r("live-9", 37.10001, -113.50002, provenance=Provenance.LIVE)

    result = sync.focus("db1", [live], known_sets=[[persisted]])

    assert isinstance(result, ResolvedTarget)
    assert result.matched_by == MATCH_COORDINATES
    assert result.requested_id == "db1"
    assert result.id == "live-9"
    assert not result.forced_visible


def test_hidden_target_forced_visible_then_expires() -> None:
    clock = FakeClock()
    sync = SelectionSynchronizer(ttl_sec=10, clock=clock)
    hidden = _r("db2", 37.3, -113.6)

    result = sync.focus("db2", [_r("db1")], known_sets=[[], [hidden]])

    assert isinstance(result, ResolvedTarget)
    assert result.matched_by == MATCH_OVERRIDE
    assert result.forced_visible
    assert sync.focused_id == "db2"
    assert [r.id for r in sync.overrides] == ["db2"]

    clock.now += 9.9
    assert sync.focused_id == "db2"
    clock.now += 0.2
    assert sync.focused_id is None
    assert sync.overrides == []


def test_override_cleared_once_visible() -> None:
    sync = SelectionSynchronizer(clock=FakeClock())
    hidden = _r("db2", 37.3, -113.6)
    sync.focus("db2", [], known_sets=[[hidden]])

    assert sync.confirm_visible([_r("db1")]) is None
    assert sync.focused_id == "db2"

    confirmed = sync.confirm_visible([hidden])
    assert confirmed is not None and confirmed.id == "db2"
    assert sync.focused_id is None


def test_unknown_id_not_found() -> None:
    sync = SelectionSynchronizer()
    result = sync.focus("ghost", [_r("db1")], known_sets=[[_r("db2")]])
    assert result == NotFound(requested_id="ghost")
    assert sync.overrides == []


def test_newer_focus_replaces_override() -> None:
    sync = SelectionSynchronizer(clock=FakeClock())
    first, second = _r("x", 37.3, -113.6), _r("y", 37.4, -113.7)
    sync.focus("x", [], known_sets=[[first, second]])
    sync.focus("y", [], known_sets=[[first, second]])
    assert sync.focused_id == "y"
    sync.clear()
    assert sync.focused_id is None
