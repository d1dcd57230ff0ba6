"""
Domain Blocklist

Operator-managed list of domains that may not be analyzed, published as a
Google Sheet CSV. Cached in memory with a TTL.

Fails open: if the sheet can't be fetched, the last good set stays in use
(or an empty set on first load) so an outage never blocks every submission.
"""

import asyncio
import csv
import io
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional, Set

import httpx

from linkscore.utils.domain_filter import canonicalize_host

logger = logging.getLogger(__name__)

HEADER_VALUES = {"domain", "domains", "website", "url"}


@dataclass(frozen=True)
class BlocklistConfig:
    """Blocklist source and cache lifetime."""
    csv_url: Optional[str] = field(default_factory=lambda: os.getenv("BLOCKLIST_CSV_URL"))
    ttl_seconds: int = field(default_factory=lambda: int(os.getenv("BLOCKLIST_TTL_SECONDS", "300")))
    timeout_seconds: float = 10.0


def normalize_entry(value: str) -> str:
    """Strip protocol, path and port from a sheet cell, then canonicalize."""
    entry = (value or "").strip().lower()
    for prefix in ("https://", "http://"):
        if entry.startswith(prefix):
            entry = entry[len(prefix):]
    entry = entry.split("/")[0].split(":")[0]
    return canonicalize_host(entry)


def parse_blocklist_csv(text: str) -> Set[str]:
    """Domains from the first CSV column; header rows, comments and junk skipped."""
    domains: Set[str] = set()
    for row in csv.reader(io.StringIO(text)):
        if not row:
            continue
        cell = row[0].strip()
        if not cell or cell.startswith("#") or cell.lower() in HEADER_VALUES:
            continue
        domain = normalize_entry(cell)
        if "." in domain and " " not in domain:
            domains.add(domain)
    return domains


class DomainBlocklist:
    """
    TTL-cached blocklist, owned by whoever constructs it (the API app).

    Usage:
        blocklist = DomainBlocklist(BlocklistConfig(csv_url=...))
        if await blocklist.is_blocked("spam.com.au"):
            ...
    """

    def __init__(
        self,
        config: Optional[BlocklistConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        static_domains: Iterable[str] = (),
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or BlocklistConfig()
        self._http_client = http_client
        self._static = {normalize_entry(d) for d in static_domains if d}
        self._clock = clock
        self._domains: Set[str] = set()
        self._loaded_at: Optional[float] = None
        self._lock = asyncio.Lock()

    def is_valid(self) -> bool:
        """True while the cached set is within its TTL."""
        if self._loaded_at is None:
            return False
        return (self._clock() - self._loaded_at) < self.config.ttl_seconds

    async def _fetch(self) -> Set[str]:
        if not self.config.csv_url:
            return set()

        headers = {"User-Agent": "LinkScore-Blocklist/1.0"}
        if self._http_client is not None:
            response = await self._http_client.get(self.config.csv_url, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds, follow_redirects=True) as client:
                response = await client.get(self.config.csv_url, headers=headers)
        response.raise_for_status()
        return parse_blocklist_csv(response.text)

    async def refresh(self) -> Dict[str, object]:
        """Reload from the sheet now, regardless of TTL. Returns stats."""
        async with self._lock:
            try:
                domains = await self._fetch()
            except httpx.HTTPError as e:
                logger.error(f"Failed to fetch domain blocklist, keeping {len(self._domains)} cached domains: {e}")
                # Next fetch attempt after one TTL
                self._loaded_at = self._clock()
                return self.stats()

            self._domains = domains
            self._loaded_at = self._clock()
            logger.info(f"Loaded {len(domains)} blocked domains")
            return self.stats()

    async def get_domains(self) -> Set[str]:
        if not self.is_valid():
            await self.refresh()
        return self._domains | self._static

    def contains(self, domain: str) -> bool:
        """Check against the currently cached set without refreshing."""
        canonical = normalize_entry(domain)
        return canonical in self._domains or canonical in self._static

    async def is_blocked(self, domain: str) -> bool:
        domains = await self.get_domains()
        blocked = normalize_entry(domain) in domains
        if blocked:
            logger.warning(f"Blocked domain submitted: {domain}")
        return blocked

    def stats(self) -> Dict[str, object]:
        return {
            "domainsCount": len(self._domains | self._static),
            "lastUpdated": (
                datetime.utcfromtimestamp(self._loaded_at).isoformat() if self._loaded_at else None
            ),
            "isValid": self.is_valid(),
        }
