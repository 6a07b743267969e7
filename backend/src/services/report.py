from __future__ import annotations

import urllib.parse
from datetime import date
from typing import List

from models import RestaurantRecommendation

MATCH_LABELS = {
    "personal-favorite": "Personal favorite",
    "friend-recommendation": "Friend pick",
    "smart-match": "Smart match",
    "trending": "Trending",
    "all-restaurants": "Nearby",
}


def maps_link(address: str) -> str:
    q = urllib.parse.quote(address)
    return f"https://www.google.com/maps/search/?api=1&query={q}"


def build_top_picks_report(picks: List[RestaurantRecommendation], day: date) -> str:
    lines = [
        "## Today's Top Picks",
        "",
        f"- Date: {day.isoformat()}",
        f"- Picks: {len(picks)}",
        "",
    ]
    if not picks:
        lines.append("No recommendations yet! Rate some restaurants to get personalized suggestions.")
        return "\n".join(lines)

    for idx, rec in enumerate(picks, start=1):
        r = rec.restaurant
        cuisines = " • ".join(r.cuisine_type[:2]) or "Restaurant"
        link = f"[View map]({maps_link(r.address)})" if r.address else "No map link"
        adjusted = f"{rec.adjusted_score:.1f}" if rec.adjusted_score is not None else "n/a"
        lines += [
            f"#### {idx}. {r.name}",
            f"- Cuisine: {cuisines}",
            f"- Address: {r.address or 'Not provided'}",
            f"- Why: {rec.primary_reason or 'Great match for your preferences'}",
            f"- Match: {round(rec.match_score)}% ({MATCH_LABELS.get(rec.match_type.value, rec.match_type.value)})",
            f"- Adjusted score: {adjusted}",
            f"- Map: {link}",
            "",
        ]
    return "\n".join(lines)
