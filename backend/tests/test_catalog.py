import json

from models import Coordinates
from services.catalog import JsonCatalog


RECORDS = [
    {"id": "a", "name": "A", "coordinates": {"lat": 37.0965, "lng": -113.5684}, "cuisineType": ["Thai"]},
    {"id": "b", "name": "B", "coordinates": {"lat": 37.4, "lng": -113.5684}, "cuisineType": ["Pizza"]},
    {"id": "bad", "name": "No coords"},
]


def test_catalog_from_file_accepts_wrapped_object(tmp_path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"restaurants": RECORDS}), encoding="utf-8")
    catalog = JsonCatalog.from_file(path)
    assert len(catalog) == 2
    assert catalog.get_by_id("b").name == "B"
    assert catalog.get_by_id("bad") is None


def test_catalog_missing_file_is_empty(tmp_path) -> None:
    catalog = JsonCatalog.from_file(tmp_path / "missing.json")
    assert len(catalog) == 0
    assert catalog.get_all() == []


def test_catalog_filters() -> None:
    catalog = JsonCatalog(RECORDS)
    assert [r.id for r in catalog.get_all(cuisine="Pizza")] == ["b"]
    assert [r.id for r in catalog.get_all(limit=1)] == ["a"]
    assert [r.id for r in catalog.near(Coordinates(lat=37.0965, lng=-113.5684), radius_km=5)] == ["a"]


def test_bundled_catalog_loads() -> None:
    from config import DEFAULT_CATALOG_PATH

    catalog = JsonCatalog.from_file(DEFAULT_CATALOG_PATH)
    assert len(catalog) >= 5
    pony = catalog.get_by_id("rest-painted-pony")
    assert pony.attributes.quietness == 75
