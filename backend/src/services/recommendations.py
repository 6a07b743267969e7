"""Personalized scoring that produces ``RestaurantRecommendation`` lists."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from models import (
    Coordinates,
    MatchType,
    PriceRange,
    Restaurant,
    RestaurantRecommendation,
    TasteProfile,
)
from services.geo import distance_km


MAX_REASONS = 3
FALLBACK_REASON = "Great option nearby"


def _price_fits(restaurant: Restaurant, price: PriceRange) -> bool:
    if restaurant.price_range is None:
        return False
    mid = restaurant.price_range.midpoint
    return price.min <= mid <= price.max


def score_restaurant(
    restaurant: Restaurant,
    profile: TasteProfile,
    *,
    favorite_ids: frozenset[str] = frozenset(),
    friend_recommended_ids: frozenset[str] = frozenset(),
    meeting_type: Optional[str] = None,
    user_location: Optional[Coordinates] = None,
) -> RestaurantRecommendation:
    score = 0.0
    reasons: list[str] = []
    match_type = MatchType.SMART_MATCH

    if restaurant.id in favorite_ids:
        score += 50
        reasons.append("One of your favorites")
        match_type = MatchType.PERSONAL_FAVORITE

    if restaurant.id in friend_recommended_ids:
        score += 40
        reasons.append("Recommended by friends")
        match_type = MatchType.FRIEND_RECOMMENDATION

    attrs = restaurant.attributes
    # live-only records carry no enrichment; those checks are skipped
    if attrs is not None and attrs.quietness is not None:
        if abs(profile.quietness - attrs.quietness) < 20:
            score += 15
            reasons.append("Matches your preference for quietness")

    if _price_fits(restaurant, profile.price_range):
        score += 10
        reasons.append("Within your price range")

    if any(c in profile.cuisine_types for c in restaurant.cuisine_type):
        score += 10
        reasons.append("Matches your cuisine preferences")

    if meeting_type and attrs is not None and meeting_type in attrs.ideal_meeting_types:
        score += 20
        reasons.append(f"Perfect for {meeting_type.replace('-', ' ')}")

    if user_location is not None:
        dist = distance_km(user_location, restaurant.coordinates)
        if dist < 1:
            score += 15
            reasons.append("Very close to you")
        elif dist < 5:
            score += 10
            reasons.append("Nearby")

    if restaurant.rating is not None and restaurant.rating.average >= 4:
        score += 10
        reasons.append("Highly rated")

    if not reasons:
        reasons.append(FALLBACK_REASON)
        score += 5

    return RestaurantRecommendation(
        restaurant=restaurant,
        match_score=min(score, 100.0),
        match_type=match_type,
        reasons=reasons[:MAX_REASONS],
    )


def personalized_recommendations(
    restaurants: Iterable[Restaurant],
    profile: Optional[TasteProfile] = None,
    *,
    favorite_ids: Iterable[str] = (),
    friend_recommended_ids: Iterable[str] = (),
    meeting_type: Optional[str] = None,
    user_location: Optional[Coordinates] = None,
    limit: int = 20,
) -> List[RestaurantRecommendation]:
    active = profile or TasteProfile()
    favorites = frozenset(favorite_ids)
    friends = frozenset(friend_recommended_ids)
    recs = [
        score_restaurant(
            r,
            active,
            favorite_ids=favorites,
            friend_recommended_ids=friends,
            meeting_type=meeting_type,
            user_location=user_location,
        )
        for r in restaurants
    ]
    recs.sort(key=lambda rec: rec.match_score, reverse=True)
    return recs[:limit]


def merge_group_profiles(profiles: Sequence[TasteProfile]) -> Optional[TasteProfile]:
    """Average numeric traits, union cuisines, intersect price ranges."""
    if not profiles:
        return None
    n = len(profiles)
    cuisines: list[str] = []
    for p in profiles:
        cuisines.extend(p.cuisine_types)
    return TasteProfile(
        quietness=sum(p.quietness for p in profiles) / n,
        service_quality=sum(p.service_quality for p in profiles) / n,
        healthiness=sum(p.healthiness for p in profiles) / n,
        value=sum(p.value for p in profiles) / n,
        atmosphere=sum(p.atmosphere for p in profiles) / n,
        cuisine_types=list(dict.fromkeys(cuisines)),
        price_range=PriceRange(
            min=max(p.price_range.min for p in profiles),
            max=min(p.price_range.max for p in profiles),
        ),
    )


def group_recommendations(
    restaurants: Iterable[Restaurant],
    profiles: Sequence[TasteProfile],
    *,
    meeting_type: str,
    favorite_ids: Iterable[str] = (),
    friend_recommended_ids: Iterable[str] = (),
    location: Optional[Coordinates] = None,
    limit: int = 10,
) -> List[RestaurantRecommendation]:
    group = merge_group_profiles(profiles)
    if group is None:
        return []

    # base pass is scored against the first participant, as the organizer
    base = personalized_recommendations(
        restaurants,
        profiles[0],
        favorite_ids=favorite_ids,
        friend_recommended_ids=friend_recommended_ids,
        meeting_type=meeting_type,
        user_location=location,
    )

    out: list[RestaurantRecommendation] = []
    for rec in base:
        attrs = rec.restaurant.attributes
        quiet_ok = attrs is not None and attrs.quietness is not None and abs(group.quietness - attrs.quietness) < 25
        reasons = list(rec.reasons)
        bonus = 0.0
        if quiet_ok and _price_fits(rec.restaurant, group.price_range):
            bonus = 30.0
            reasons.append("Suitable for all participants")
        out.append(
            RestaurantRecommendation(
                restaurant=rec.restaurant,
                match_score=min(rec.match_score + bonus, 100.0),
                match_type=rec.match_type,
                reasons=reasons[:MAX_REASONS],
            )
        )
    out.sort(key=lambda r: r.match_score, reverse=True)
    return out[:limit]
