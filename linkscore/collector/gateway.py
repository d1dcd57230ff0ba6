"""
Backlink Data Gateway

Turns raw DataForSEO backlink rows into an ordered set of authority
referring domains:
- Normalizes rank to the 0-100 scale
- Keeps only rank >= 20 and spam score <= 30
- Merges www./bare host variants (max rank, min spam, max traffic)
- Orders by rank descending, then domain name

Retry and backoff live in the client; once exhausted, APIError propagates
and fails the calling stage.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from linkscore.collector.client import DataForSEOClient
from linkscore.utils.domain_filter import canonicalize_host

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorityCriteria:
    """Thresholds that define an authority link."""
    min_rank: int = field(default_factory=lambda: int(os.getenv("AUTHORITY_MIN_RANK", "20")))
    max_spam_score: int = field(default_factory=lambda: int(os.getenv("AUTHORITY_MAX_SPAM", "30")))

    def accepts(self, rank: float, spam_score: float) -> bool:
        return rank >= self.min_rank and spam_score <= self.max_spam_score


@dataclass
class AuthorityDomain:
    """A referring domain that passed the authority filter."""
    domain: str
    rank: int
    spam_score: int
    traffic: int = 0
    first_seen: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "rank": self.rank,
            "spamScore": self.spam_score,
            "traffic": self.traffic,
            "firstSeen": self.first_seen.isoformat() if self.first_seen else None,
        }


@dataclass
class DomainSnapshot:
    """Authority profile of one domain, now and at campaign start."""
    domain: str
    authority_domains: List[AuthorityDomain]
    links_at_start: int

    @property
    def links_now(self) -> int:
        return len(self.authority_domains)

    @property
    def links_gained(self) -> int:
        return self.links_now - self.links_at_start


# =============================================================================
# NORMALIZATION HELPERS
# =============================================================================

def normalize_rank(raw: Any, scale: int = 100) -> int:
    """Convert a provider rank to the 0-100 scale."""
    try:
        value = float(raw or 0)
    except (TypeError, ValueError):
        return 0
    if scale > 100:
        value = value * 100 / scale
    return int(round(min(max(value, 0), 100)))


def detect_rank_scale(items: List[Dict[str, Any]], declared: Optional[str] = None) -> int:
    """
    Work out which rank scale a response uses.

    An explicit "one_thousand"/"one_hundred" declaration wins. Otherwise any
    rank above 100 means the account default (0-1000) leaked through.
    """
    if declared == "one_thousand":
        return 1000
    if declared == "one_hundred":
        return 100
    for item in items:
        try:
            if float(item.get("domain_from_rank") or 0) > 100:
                return 1000
        except (TypeError, ValueError):
            continue
    return 100


def parse_first_seen(value: Any) -> Optional[datetime]:
    """Parse DataForSEO timestamps ("2021-03-04 10:11:12 +00:00") to naive UTC."""
    if not value or not isinstance(value, str):
        return None
    for fmt in ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            parsed = datetime.strptime(value, fmt)
            return parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def months_before(moment: datetime, months: int) -> datetime:
    """Same day-of-month `months` earlier, clamped to the month's last day."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    # Last day of the target month
    next_month = datetime(year + (month == 12), month % 12 + 1, 1)
    last_day = (next_month - datetime(year, month, 1)).days
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def merge_authority_domains(
    rows: Iterable[Dict[str, Any]],
    criteria: Optional[AuthorityCriteria] = None,
    scale: int = 100,
) -> List[AuthorityDomain]:
    """
    Filter raw backlink rows and collapse host variants.

    Rows are judged individually against the criteria (after rank
    normalization). Surviving rows are grouped by canonical host; each group
    keeps the maximum rank, minimum spam score, maximum traffic and the
    earliest first_seen.

    Returns:
        Authority domains ordered by rank descending, then domain ascending
    """
    criteria = criteria or AuthorityCriteria()
    merged: Dict[str, AuthorityDomain] = {}

    for row in rows:
        host = canonicalize_host(row.get("domain_from") or row.get("domain"))
        if not host:
            continue

        raw_rank = row["domain_from_rank"] if "domain_from_rank" in row else row.get("rank")
        rank = normalize_rank(raw_rank, scale)
        spam = int(row.get("backlink_spam_score", row.get("spam_score")) or 0)
        if not criteria.accepts(rank, spam):
            continue

        traffic = int(row.get("traffic") or 0)
        first_seen = parse_first_seen(row.get("first_seen"))

        existing = merged.get(host)
        if existing is None:
            merged[host] = AuthorityDomain(host, rank, spam, traffic, first_seen)
            continue

        existing.rank = max(existing.rank, rank)
        existing.spam_score = min(existing.spam_score, spam)
        existing.traffic = max(existing.traffic, traffic)
        if first_seen and (existing.first_seen is None or first_seen < existing.first_seen):
            existing.first_seen = first_seen

    return sorted(merged.values(), key=lambda d: (-d.rank, d.domain))


def count_present_at(domains: Iterable[AuthorityDomain], moment: datetime) -> int:
    """How many of today's authority domains were already linking at `moment`."""
    return sum(1 for d in domains if d.first_seen is not None and d.first_seen <= moment)


# =============================================================================
# GATEWAY
# =============================================================================

class BacklinkGateway:
    """
    Authority-domain retrieval on top of DataForSEOClient.

    Usage:
        gateway = BacklinkGateway(client)
        domains = await gateway.fetch_authority_domains("acme.com.au")
    """

    def __init__(
        self,
        client: DataForSEOClient,
        criteria: Optional[AuthorityCriteria] = None,
        limit: int = 1000,
    ):
        self.client = client
        self.criteria = criteria or AuthorityCriteria()
        self.limit = limit

    async def fetch_authority_domains(self, domain: str) -> List[AuthorityDomain]:
        """
        Authority referring domains for `domain`, strongest first.

        Raises:
            APIError: Provider failure after the client's retries
        """
        target = canonicalize_host(domain)
        items = await self.client.get_backlinks(target, limit=self.limit)
        scale = detect_rank_scale(items)
        if scale != 100:
            logger.warning(f"Backlinks for {target} came back on a 0-{scale} rank scale, normalizing")

        authority = merge_authority_domains(items, self.criteria, scale)
        logger.info(
            f"{target}: {len(items)} referring domains, {len(authority)} authority domains "
            f"(rank>={self.criteria.min_rank}, spam<={self.criteria.max_spam_score})"
        )
        return authority

    async def fetch_snapshot(self, domain: str, campaign_start: datetime) -> DomainSnapshot:
        """Authority domains now plus the estimated count at campaign start."""
        authority = await self.fetch_authority_domains(domain)
        return DomainSnapshot(
            domain=canonicalize_host(domain),
            authority_domains=authority,
            links_at_start=count_present_at(authority, campaign_start),
        )
