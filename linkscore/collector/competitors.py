"""
Competitor Resolver

Finds the local domains a customer actually competes with by looking at who
ranks organically for the customer's keywords in their location.

Ranking: domains that appear for more keywords come first; ties go to the
best (lowest) average position, then the domain name.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from linkscore.collector.client import DataForSEOClient
from linkscore.utils.domain_filter import canonicalize_host, is_excluded_domain

logger = logging.getLogger(__name__)


@dataclass
class CompetitorCandidate:
    """A domain seen in organic results, with where it ranked per keyword."""
    domain: str
    positions: Dict[str, int] = field(default_factory=dict)

    @property
    def keyword_count(self) -> int:
        return len(self.positions)

    @property
    def average_position(self) -> float:
        if not self.positions:
            return float("inf")
        return sum(self.positions.values()) / len(self.positions)


def rank_candidates(candidates: List[CompetitorCandidate]) -> List[CompetitorCandidate]:
    """Order by keyword coverage desc, average position asc, domain asc."""
    return sorted(candidates, key=lambda c: (-c.keyword_count, c.average_position, c.domain))


class CompetitorResolver:
    """
    Resolves a bounded competitor set from SERP data.

    Args:
        client: DataForSEOClient instance
        max_competitors: Upper bound on returned domains
        serp_depth: Organic results considered per keyword
        is_blocked: Optional predicate for the operator-managed blocklist
        domain_suffix: Only domains ending in this suffix count (e.g. ".com.au")
    """

    def __init__(
        self,
        client: DataForSEOClient,
        max_competitors: int = 5,
        serp_depth: int = 10,
        is_blocked: Optional[Callable[[str], bool]] = None,
        domain_suffix: Optional[str] = None,
    ):
        self.client = client
        self.max_competitors = max_competitors
        self.serp_depth = serp_depth
        self.is_blocked = is_blocked
        self.domain_suffix = (domain_suffix or "").lower()

    def _usable(self, domain: str, own_domain: str) -> bool:
        if not domain or domain == own_domain:
            return False
        if self.domain_suffix and not domain.endswith(self.domain_suffix):
            return False
        if is_excluded_domain(domain):
            return False
        if self.is_blocked and self.is_blocked(domain):
            return False
        return True

    async def _keyword_positions(self, keyword: str, location_code: int) -> Dict[str, int]:
        """Best organic position per canonical domain for one keyword."""
        items = await self.client.get_serp_results(keyword, location_code, depth=self.serp_depth)

        positions: Dict[str, int] = {}
        organic = [item for item in items if item.get("type", "organic") == "organic"]
        for index, item in enumerate(organic[: self.serp_depth]):
            domain = canonicalize_host(item.get("domain"))
            if not domain:
                continue
            position = item.get("rank_absolute") or item.get("rank_group") or index + 1
            position = int(position)
            if domain not in positions or position < positions[domain]:
                positions[domain] = position
        return positions

    async def find_candidates(
        self,
        keywords: List[str],
        location_code: int,
        own_domain: str,
    ) -> List[CompetitorCandidate]:
        """All usable candidates, ranked, without the size cap."""
        own = canonicalize_host(own_domain)
        results = await asyncio.gather(
            *(self._keyword_positions(keyword, location_code) for keyword in keywords)
        )

        candidates: Dict[str, CompetitorCandidate] = {}
        for keyword, positions in zip(keywords, results):
            for domain, position in positions.items():
                if not self._usable(domain, own):
                    continue
                candidate = candidates.setdefault(domain, CompetitorCandidate(domain))
                candidate.positions[keyword] = position

        ranked = rank_candidates(list(candidates.values()))
        logger.info(f"Found {len(ranked)} usable competitor candidates across {len(keywords)} keywords")
        return ranked

    async def resolve_competitors(
        self,
        keywords: List[str],
        location_code: int,
        own_domain: str,
    ) -> List[str]:
        """
        Competitor domains for the keyword set, best first, at most max_competitors.

        Fewer than two results is not an error; scoring falls back to neutral values.

        Raises:
            APIError: SERP retrieval failed after retries
        """
        ranked = await self.find_candidates(keywords, location_code, own_domain)
        selected = [c.domain for c in ranked[: self.max_competitors]]
        if len(selected) < 2:
            logger.warning(f"Only {len(selected)} competitors found for {own_domain}")
        return selected
