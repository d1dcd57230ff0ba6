"""
Link Gap Analyzer

A link gap is an authority referring domain that links to at least one
competitor but not to the customer.

Ordering (highest priority first):
1. Number of competitors holding the domain, descending
2. Domain rank, descending
3. Domain name, ascending (stable output)

Priority tiers:
- HIGH: rank >= 50, or held by 3+ competitors
- MEDIUM: rank >= 35, or held by 2+ competitors
- LOW: everything else
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from linkscore.collector.gateway import AuthorityDomain
from linkscore.utils.domain_filter import canonicalize_host

logger = logging.getLogger(__name__)

HIGH_PRIORITY_RANK = 50
MEDIUM_PRIORITY_RANK = 35
DEFAULT_TOP_N = 10


@dataclass
class LinkGapRecord:
    domain: str
    rank: int
    competitors: List[str]
    priority: str
    traffic: int = 0

    @property
    def competitor_count(self) -> int:
        return len(self.competitors)

    def to_dict(self) -> Dict:
        return {
            "domain": self.domain,
            "rank": self.rank,
            "competitors": list(self.competitors),
            "competitorCount": self.competitor_count,
            "priority": self.priority,
            "traffic": self.traffic,
        }


@dataclass
class LinkGapReport:
    """Full ordered gap list; callers slice `top()` for external use."""
    gaps: List[LinkGapRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.gaps)

    @property
    def high_priority(self) -> int:
        return sum(1 for g in self.gaps if g.priority == "HIGH")

    def top(self, n: int = DEFAULT_TOP_N) -> List[LinkGapRecord]:
        return self.gaps[:n]


def assign_priority(rank: int, competitor_count: int) -> str:
    if rank >= HIGH_PRIORITY_RANK or competitor_count >= 3:
        return "HIGH"
    if rank >= MEDIUM_PRIORITY_RANK or competitor_count >= 2:
        return "MEDIUM"
    return "LOW"


def compute_gaps(
    customer_domains: Iterable[AuthorityDomain],
    competitor_domain_sets: Dict[str, Iterable[AuthorityDomain]],
    customer_domain: Optional[str] = None,
) -> LinkGapReport:
    """
    Diff the customer's authority set against every competitor's.

    Args:
        customer_domains: Customer's authority referring domains
        competitor_domain_sets: Competitor domain -> its authority referring domains
        customer_domain: Customer's own host; never reported as a gap

    Returns:
        LinkGapReport with every gap, highest priority first
    """
    have = {canonicalize_host(d.domain) for d in customer_domains}
    own = canonicalize_host(customer_domain)

    holders: Dict[str, List[str]] = {}
    best: Dict[str, AuthorityDomain] = {}

    for competitor, domains in competitor_domain_sets.items():
        competitor_host = canonicalize_host(competitor)
        for d in domains:
            host = canonicalize_host(d.domain)
            if not host or host in have or host == own:
                continue
            competitors = holders.setdefault(host, [])
            if competitor_host not in competitors:
                competitors.append(competitor_host)
            current = best.get(host)
            if current is None or d.rank > current.rank:
                best[host] = d

    gaps = [
        LinkGapRecord(
            domain=host,
            rank=best[host].rank,
            competitors=sorted(competitors),
            priority=assign_priority(best[host].rank, len(competitors)),
            traffic=best[host].traffic,
        )
        for host, competitors in holders.items()
    ]
    gaps.sort(key=lambda g: (-g.competitor_count, -g.rank, g.domain))

    logger.info(f"Link gaps: {len(gaps)} total across {len(competitor_domain_sets)} competitors")
    return LinkGapReport(gaps)
