"""Data models for the restaurant aggregation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


MEETING_TYPES = (
    "casual-checkin",
    "investor-lunch",
    "team-meeting",
    "client-meeting",
    "post-event-debrief",
    "one-on-one",
    "social-lunch",
)

SERVICE_SPEEDS = ("fast", "medium", "slow")
ATMOSPHERES = ("casual", "upscale", "energetic", "intimate")


class LiveSearchError(RuntimeError):
    """Live place-search or geocoding request failed."""


class Provenance(str, Enum):
    PERSISTED = "persisted"
    LIVE = "live"


class MatchType(str, Enum):
    PERSONAL_FAVORITE = "personal-favorite"
    FRIEND_RECOMMENDATION = "friend-recommendation"
    SMART_MATCH = "smart-match"
    TRENDING = "trending"
    ALL_RESTAURANTS = "all-restaurants"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass
class PriceRange:
    min: float
    max: float

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2.0


@dataclass
class RatingSummary:
    average: float = 0.0
    count: int = 0


@dataclass
class RestaurantAttributes:
    quietness: Optional[int] = None  # 0-100
    service_speed: Optional[str] = None
    atmosphere: Optional[str] = None
    private_booths: Optional[bool] = None
    walkable_distance: Optional[bool] = None
    ideal_meeting_types: list[str] = field(default_factory=list)


@dataclass
class Restaurant:
    id: str
    name: str
    address: str
    coordinates: Coordinates
    cuisine_type: list[str] = field(default_factory=list)
    provenance: Provenance = Provenance.PERSISTED
    price_range: Optional[PriceRange] = None
    rating: Optional[RatingSummary] = None
    attributes: Optional[RestaurantAttributes] = None
    image_url: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class RestaurantRecommendation:
    restaurant: Restaurant
    match_score: float
    match_type: MatchType = MatchType.SMART_MATCH
    reasons: list[str] = field(default_factory=list)
    adjusted_score: Optional[float] = None

    @property
    def primary_reason(self) -> Optional[str]:
        return self.reasons[0] if self.reasons else None


@dataclass
class TasteProfile:
    quietness: float = 50
    service_quality: float = 50
    healthiness: float = 50
    value: float = 50
    atmosphere: float = 50
    cuisine_types: list[str] = field(default_factory=list)
    price_range: PriceRange = field(default_factory=lambda: PriceRange(min=10, max=100))


@dataclass
class UserRestaurantState:
    restaurant_id: str
    want_to_go: bool = False
    has_been: bool = False
    personal_rating: Optional[int] = None  # 1-5
    zip_code: Optional[str] = None
