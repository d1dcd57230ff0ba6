"""
LinkScore Engine - Data Collection Package

Everything that talks to DataForSEO:
- Client: HTTP transport, retry, spend tracking
- Gateway: authority referring domains per target
- Competitors: SERP-based competitor discovery
- Locations: Australian market location codes
"""

from .client import DataForSEOClient, RetryConfig, safe_get_result
from .gateway import (
    AuthorityCriteria,
    AuthorityDomain,
    BacklinkGateway,
    DomainSnapshot,
    count_present_at,
    merge_authority_domains,
    months_before,
    normalize_rank,
)
from .competitors import CompetitorCandidate, CompetitorResolver, rank_candidates
from .locations import LOCATIONS, HIGH_VALUE_LOCATIONS, MarketLocation, get_location, is_known_location

__all__ = [
    # Client
    "DataForSEOClient",
    "RetryConfig",
    "safe_get_result",

    # Gateway
    "AuthorityCriteria",
    "AuthorityDomain",
    "BacklinkGateway",
    "DomainSnapshot",
    "count_present_at",
    "merge_authority_domains",
    "months_before",
    "normalize_rank",

    # Competitors
    "CompetitorCandidate",
    "CompetitorResolver",
    "rank_candidates",

    # Locations
    "LOCATIONS",
    "HIGH_VALUE_LOCATIONS",
    "MarketLocation",
    "get_location",
    "is_known_location",
]
