from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Tuple

from models import Provenance, Restaurant


IdentityKey = Tuple[str, str, str]


def identity_key(restaurant: Restaurant) -> IdentityKey:
    """Lower-cased name plus coordinates rounded to 4 decimals (~11m)."""
    coords = restaurant.coordinates
    return (restaurant.name.lower(), f"{coords.lat:.4f}", f"{coords.lng:.4f}")


def same_place(a: Restaurant, b: Restaurant) -> bool:
    return identity_key(a) == identity_key(b)


def merge_sources(persisted: Iterable[Restaurant], live: Iterable[Restaurant]) -> List[Restaurant]:
    """Merge the persisted catalog with live search results by identity key.

    Live results win for id, name, address and coordinates; every other
    field (ratings, attributes, price range, ...) is kept from the entry
    already in the map. Duplicate live keys resolve last-write-wins.
    """
    merged: Dict[IdentityKey, Restaurant] = {}
    for item in persisted:
        merged[identity_key(item)] = replace(item, provenance=Provenance.PERSISTED)

    for item in live:
        key = identity_key(item)
        existing = merged.get(key)
        if existing is None:
            merged[key] = replace(item, provenance=Provenance.LIVE)
            continue
        merged[key] = replace(
            existing,
            id=item.id,
            name=item.name,
            address=item.address,
            coordinates=item.coordinates,
            provenance=Provenance.LIVE,
        )
    return list(merged.values())


def union_by_identity(existing: Iterable[Restaurant], incoming: Iterable[Restaurant]) -> List[Restaurant]:
    """Append incoming items whose identity key is unseen; existing entries are left untouched."""
    out = list(existing)
    seen = {identity_key(r) for r in out}
    for item in incoming:
        key = identity_key(item)
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out
