from datetime import date

from models import Coordinates, MatchType, Restaurant, RestaurantRecommendation
from services.report import build_top_picks_report, maps_link


def test_report_empty_state() -> None:
    md = build_top_picks_report([], date(2024, 6, 1))
    assert "## Today's Top Picks" in md
    assert "2024-06-01" in md
    assert "No recommendations yet!" in md


def test_report_lists_picks() -> None:
    r = Restaurant(
        id="a",
        name="Cafe Max",
        address="1 Main St, St. George, UT",
        coordinates=Coordinates(lat=37.1, lng=-113.5),
        cuisine_type=["Cafe", "Bakery", "Brunch"],
    )
    rec = RestaurantRecommendation(
        restaurant=r,
        match_score=90,
        match_type=MatchType.FRIEND_RECOMMENDATION,
        reasons=["Recommended by friends"],
        adjusted_score=88.5,
    )
    md = build_top_picks_report([rec], date(2024, 6, 1))
    assert "#### 1. Cafe Max" in md
    assert "Cafe • Bakery" in md
    assert "Brunch" not in md
    assert "Match: 90% (Friend pick)" in md
    assert "Adjusted score: 88.5" in md
    assert maps_link(r.address) in md


def test_maps_link_quotes_address() -> None:
    assert maps_link("1 Main St") == "https://www.google.com/maps/search/?api=1&query=1%20Main%20St"
