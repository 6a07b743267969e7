from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional, Set

from models import MatchType, RestaurantRecommendation


DEFAULT_TOP_K = 3


class RankingPolicy(str, Enum):
    # Stable within a calendar day, varies across days.
    DAILY_TOP_PICKS = "daily-top-picks"
    # True shuffle, used for ambient map/list blending.
    SHUFFLED = "shuffled"


def daily_seed(day: date) -> int:
    return day.year * 10000 + day.month * 100 + day.day


def dedupe_by_restaurant_id(recommendations: Iterable[RestaurantRecommendation]) -> List[RestaurantRecommendation]:
    """Keep the first recommendation for each restaurant id, preserving order."""
    seen: Set[str] = set()
    out: list[RestaurantRecommendation] = []
    for rec in recommendations:
        rid = rec.restaurant.id
        if rid in seen:
            continue
        seen.add(rid)
        out.append(rec)
    return out


def _has_usable_name(rec: RestaurantRecommendation) -> bool:
    name = rec.restaurant.name
    return isinstance(name, str) and len(name) > 0


def adjusted_score(rec: RestaurantRecommendation, seed: int) -> float:
    return float(rec.match_score) + ((seed % len(rec.restaurant.name)) - 2.5)


def rank_top_picks(
    recommendations: Iterable[RestaurantRecommendation],
    day: date,
    *,
    top_k: int = DEFAULT_TOP_K,
) -> List[RestaurantRecommendation]:
    """Deterministic per-day top picks.

    The perturbation is ``(daily_seed % len(name)) - 2.5`` added to the
    match score; same input and same day always give the same output.
    Returned items are copies carrying ``adjusted_score``.
    """
    seed = daily_seed(day)
    unique = [rec for rec in dedupe_by_restaurant_id(recommendations) if _has_usable_name(rec)]
    scored = [replace(rec, adjusted_score=adjusted_score(rec, seed)) for rec in unique]
    # sort is stable: equal adjusted scores keep input order
    scored.sort(key=lambda r: r.adjusted_score, reverse=True)
    return scored[: max(0, top_k)]


def shuffle_picks(
    recommendations: Iterable[RestaurantRecommendation],
    *,
    limit: int,
    rng: Optional[random.Random] = None,
) -> List[RestaurantRecommendation]:
    """Randomly ordered, deduplicated picks capped at ``limit``."""
    pool = [rec for rec in dedupe_by_restaurant_id(recommendations) if _has_usable_name(rec)]
    (rng or random.Random()).shuffle(pool)
    return pool[: max(0, limit)]


def rank_recommendations(
    recommendations: Iterable[RestaurantRecommendation],
    *,
    policy: RankingPolicy,
    day: Optional[date] = None,
    limit: int = DEFAULT_TOP_K,
    rng: Optional[random.Random] = None,
) -> List[RestaurantRecommendation]:
    if policy is RankingPolicy.DAILY_TOP_PICKS:
        if day is None:
            raise ValueError("daily top picks require a day")
        return rank_top_picks(recommendations, day, top_k=limit)
    if policy is RankingPolicy.SHUFFLED:
        return shuffle_picks(recommendations, limit=limit, rng=rng)
    raise ValueError(f"unknown ranking policy: {policy}")


@dataclass
class DashboardSections:
    top_picks: list[RestaurantRecommendation] = field(default_factory=list)
    friend_picks: list[RestaurantRecommendation] = field(default_factory=list)
    personal_match: Optional[RestaurantRecommendation] = None
    nearby_picks: list[RestaurantRecommendation] = field(default_factory=list)


def build_dashboard(
    recommendations: List[RestaurantRecommendation],
    top_picks: List[RestaurantRecommendation],
    *,
    nearby_count: int = 3,
) -> DashboardSections:
    picked = {rec.restaurant.id for rec in top_picks}
    friend = [r for r in recommendations if r.match_type is MatchType.FRIEND_RECOMMENDATION][:1]
    personal = next(
        (
            r
            for r in recommendations
            if r.match_type in (MatchType.SMART_MATCH, MatchType.PERSONAL_FAVORITE)
            and r.restaurant.id not in picked
        ),
        None,
    )
    nearby = [r for r in recommendations if r.restaurant.id not in picked][:nearby_count]
    return DashboardSections(
        top_picks=list(top_picks),
        friend_picks=friend,
        personal_match=personal,
        nearby_picks=nearby,
    )
