import math

from models import Coordinates, Provenance
from services.normalizer import normalize_live, normalize_many, normalize_persisted


def _doc(**overrides):
    doc = {
        "id": "db1",
        "name": "Cafe X",
        "address": "100 Main St, St. George, UT 84770",
        "coordinates": {"lat": 37.1, "lng": -113.5},
        "cuisineType": ["Cafe"],
        "priceRange": {"min": 40, "max": 20},
        "rating": {"average": 4.2, "count": 10},
        "attributes": {
            "quietness": 130,
            "serviceSpeed": "warp",
            "atmosphere": "casual",
            "idealMeetingTypes": ["team-meeting", "karaoke"],
        },
    }
    doc.update(overrides)
    return doc


def _feature(**props):
    base = {"mapbox_id": "abc", "name": "Taco Spot", "full_address": "1 Taco Way, St. George, UT 84790"}
    base.update(props)
    return {"type": "Feature", "geometry": {"coordinates": [-113.5684, 37.0965]}, "properties": base}


def test_persisted_record_normalized() -> None:
    r = normalize_persisted(_doc())
    assert r is not None
    assert r.provenance is Provenance.PERSISTED
    assert r.coordinates == Coordinates(lat=37.1, lng=-113.5)
    # reversed price bounds are swapped
    assert (r.price_range.min, r.price_range.max) == (20, 40)
    assert r.attributes.quietness == 100
    assert r.attributes.service_speed is None
    assert r.attributes.atmosphere == "casual"
    assert r.attributes.ideal_meeting_types == ["team-meeting"]


def test_persisted_record_without_coordinates_rejected() -> None:
    assert normalize_persisted(_doc(coordinates={"lat": math.nan, "lng": -113.5})) is None
    assert normalize_persisted(_doc(coordinates=None)) is None
    assert normalize_persisted(_doc(name="  ")) is None


def test_live_feature_normalized_with_prefix() -> None:
    center = Coordinates(lat=37.0965, lng=-113.5684)
    r = normalize_live(_feature(poi_category=["mexican", "tacos", "fast food", "bar"]), center=center, radius_km=10)
    assert r is not None
    assert r.id == "mapbox-abc"
    assert r.provenance is Provenance.LIVE
    assert r.cuisine_type == ["mexican", "tacos", "fast food"]
    assert r.attributes is not None and r.attributes.walkable_distance is True


def test_live_feature_outside_radius_dropped() -> None:
    far = Coordinates(lat=37.5, lng=-113.5684)
    assert normalize_live(_feature(), center=far, radius_km=10) is None


def test_live_feature_falls_back_to_property_coordinates() -> None:
    feat = _feature(coordinates={"latitude": 37.2, "longitude": -113.6})
    feat["geometry"] = {}
    r = normalize_live(feat)
    assert r is not None
    assert r.coordinates == Coordinates(lat=37.2, lng=-113.6)
    assert r.cuisine_type == ["Restaurant"]
    assert r.attributes is None


def test_normalize_many_skips_rejects() -> None:
    items = normalize_many([_doc(), {"id": "x"}, "garbage"])
    assert [r.id for r in items] == ["db1"]


def test_live_feature_with_malformed_sections_rejected_or_degraded() -> None:
    assert normalize_live({"id": "x", "properties": "oops", "geometry": {"coordinates": [-113.5, 37.1]}}) is None
    assert normalize_live({"geometry": [-113.5, 37.1], "properties": {"mapbox_id": "x", "name": "Y"}}) is None

    feat = _feature(full_address=None, context={"place": "St George", "region": {"region_code": "UT"}})
    r = normalize_live(feat)
    assert r is not None
    assert r.address == "UT"


def test_normalize_many_live_keeps_good_features_around_bad_ones() -> None:
    items = normalize_many([_feature(), {"properties": "oops"}, {"geometry": "nope"}], live=True)
    assert [r.id for r in items] == ["mapbox-abc"]
