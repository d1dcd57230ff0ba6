"""
Australian market locations.

Maps the location keys accepted at intake to DataForSEO location codes,
display names and the market value tier used by lead scoring and webhooks.
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class MarketLocation:
    key: str
    code: int
    name: str
    market_value: str  # HIGH, MEDIUM or VARIABLE


DEFAULT_LOCATION = "australia_general"

LOCATIONS: Dict[str, MarketLocation] = {
    loc.key: loc for loc in (
        MarketLocation("sydney", 1000286, "Sydney, NSW", "HIGH"),
        MarketLocation("melbourne", 1000567, "Melbourne, VIC", "HIGH"),
        MarketLocation("brisbane", 1000339, "Brisbane, QLD", "HIGH"),
        MarketLocation("perth", 1000676, "Perth, WA", "HIGH"),
        MarketLocation("adelaide", 1000422, "Adelaide, SA", "MEDIUM"),
        MarketLocation("gold_coast", 1000665, "Gold Coast, QLD", "MEDIUM"),
        MarketLocation("newcastle", 1000255, "Newcastle, NSW", "MEDIUM"),
        MarketLocation("canberra", 1000142, "Canberra, ACT", "MEDIUM"),
        MarketLocation("sunshine_coast", 9053248, "Sunshine Coast, QLD", "MEDIUM"),
        MarketLocation("wollongong", 1000314, "Wollongong, NSW", "MEDIUM"),
        MarketLocation("central_coast", 1000594, "Central Coast, NSW", "MEDIUM"),
        MarketLocation("australia_general", 2036, "Australia", "VARIABLE"),
    )
}

# Metro markets that earn the location bonus in lead potential scoring
HIGH_VALUE_LOCATIONS = frozenset(k for k, loc in LOCATIONS.items() if loc.market_value == "HIGH")


def is_known_location(key: str) -> bool:
    return (key or "").strip().lower() in LOCATIONS


def get_location(key: str) -> MarketLocation:
    """Resolve a location key, falling back to the national location."""
    return LOCATIONS.get((key or "").strip().lower(), LOCATIONS[DEFAULT_LOCATION])
