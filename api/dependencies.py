"""
FastAPI Dependencies

Wires the service objects once per process and hands them to routes via
Depends(get_services). Tests replace the whole container through
app.dependency_overrides.
"""

import hmac
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.engine import Engine

from linkscore.analyzer import AnalysisOrchestrator, StuckJobReaper, default_client_factory
from linkscore.cache import BlocklistConfig, DomainBlocklist
from linkscore.database import JobRepository, get_engine, make_session_factory
from linkscore.delivery import WebhookNotifier
from linkscore.intake import RateLimiter
from linkscore.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    engine: Engine
    repo: JobRepository
    orchestrator: AnalysisOrchestrator
    reaper: StuckJobReaper
    blocklist: DomainBlocklist
    rate_limiter: RateLimiter


def build_services(settings: Settings, engine: Engine, client_factory=None, notifier=None, blocklist=None) -> Services:
    """Assemble the service graph around one engine."""
    repo = JobRepository(make_session_factory(engine))
    blocklist = blocklist or DomainBlocklist(BlocklistConfig(
        csv_url=settings.BLOCKLIST_CSV_URL,
        ttl_seconds=settings.BLOCKLIST_TTL_SECONDS,
    ))
    notifier = notifier or WebhookNotifier(settings.webhook_urls, timeout=settings.WEBHOOK_TIMEOUT_SECONDS)
    orchestrator = AnalysisOrchestrator(
        repo,
        client_factory or default_client_factory(settings),
        notifier=notifier,
        blocklist=blocklist,
        settings=settings,
    )
    return Services(
        settings=settings,
        engine=engine,
        repo=repo,
        orchestrator=orchestrator,
        reaper=StuckJobReaper(repo, engine),
        blocklist=blocklist,
        rate_limiter=RateLimiter(
            requests_per_minute=settings.SUBMISSIONS_PER_MINUTE,
            requests_per_hour=settings.SUBMISSIONS_PER_HOUR,
        ),
    )


@lru_cache
def get_services() -> Services:
    """Process-wide services built from environment settings."""
    return build_services(get_settings(), get_engine())


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def require_admin(
    services: Services = Depends(get_services),
    x_admin_key: Optional[str] = Header(default=None),
) -> None:
    """
    Raises:
        HTTPException 401: ADMIN_API_KEY is set and the header doesn't match
    """
    expected = services.settings.ADMIN_API_KEY
    if not expected:
        return
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key")
