from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol

from loguru import logger

from models import Coordinates, Restaurant
from services.filters import filter_within_radius
from services.normalizer import normalize_many


class PersistedCatalog(Protocol):
    def get_all(self, limit: int = 100, cuisine: Optional[str] = None) -> List[Restaurant]: ...

    def get_by_id(self, restaurant_id: str) -> Optional[Restaurant]: ...


class JsonCatalog:
    """Read-only persisted catalog backed by a JSON array of store documents."""

    def __init__(self, records: Iterable[Any]) -> None:
        self._items = normalize_many(records)
        self._by_id = {r.id: r for r in self._items}

    @classmethod
    def from_file(cls, path: str | Path) -> "JsonCatalog":
        path = Path(path)
        if not path.exists():
            logger.warning("catalog file {} not found; starting empty", path)
            return cls([])
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if isinstance(data, dict):
            data = data.get("restaurants") or []
        catalog = cls(data)
        logger.info("loaded {} restaurants from {}", len(catalog), path)
        return catalog

    def __len__(self) -> int:
        return len(self._items)

    def get_all(self, limit: int = 100, cuisine: Optional[str] = None) -> List[Restaurant]:
        items = self._items
        if cuisine:
            items = [r for r in items if cuisine in r.cuisine_type]
        return list(items[: max(0, limit)])

    def get_by_id(self, restaurant_id: str) -> Optional[Restaurant]:
        return self._by_id.get(restaurant_id)

    def near(self, center: Coordinates, radius_km: float = 5.0, limit: int = 20) -> List[Restaurant]:
        return filter_within_radius(self._items, center, radius_km)[: max(0, limit)]
