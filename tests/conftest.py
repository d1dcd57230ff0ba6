"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules:
- In-memory SQLite repository
- Scripted DataForSEO client (no network)
- Sample SERP and backlink payloads
"""

import asyncio

import pytest
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from linkscore.database import JobRepository, create_db_engine, init_db, make_session_factory
from linkscore.intake import CampaignParameters
from linkscore.utils.config import Settings


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repo(engine) -> JobRepository:
    return JobRepository(make_session_factory(engine))


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        DATAFORSEO_LOGIN="test-login",
        DATAFORSEO_PASSWORD="test-password",
        WEBHOOK_URLS="",
        MAX_COMPETITORS=5,
        COMPETITOR_CONCURRENCY=2,
        ENABLE_REAPER_SCHEDULE=False,
        SUBMISSIONS_PER_MINUTE=100,
        SUBMISSIONS_PER_HOUR=100,
    )


@pytest.fixture
def campaign() -> CampaignParameters:
    """The acme.com.au Sydney plumbing campaign."""
    return CampaignParameters(
        domain="acme.com.au",
        location="sydney",
        location_code=1000286,
        monthly_spend=3000,
        investment_months=12,
        keywords=["plumber sydney", "emergency plumber"],
        email="owner@acme.com.au",
        company_name="Acme Plumbing",
    )


@pytest.fixture
def make_job(repo, campaign):
    """Factory for pending jobs with the sample campaign parameters."""
    def _make(**overrides):
        params = dict(
            domain=campaign.domain,
            location=campaign.location,
            location_code=campaign.location_code,
            monthly_spend=campaign.monthly_spend,
            investment_months=campaign.investment_months,
            keywords=campaign.keywords,
            email=campaign.email,
            company_name=campaign.company_name,
        )
        params.update(overrides)
        return repo.create(**params)
    return _make


# ============================================================================
# Mock Data Fixtures
# ============================================================================

OLD_LINK = "2019-06-01 08:00:00 +00:00"


def recent_link(days: int = 30) -> str:
    """first_seen timestamp inside any campaign window of a month or more."""
    moment = datetime.utcnow() - timedelta(days=days)
    return moment.strftime("%Y-%m-%d %H:%M:%S +00:00")


def backlink_row(domain: str, rank: int, spam: int = 5, first_seen: Optional[str] = OLD_LINK) -> Dict[str, Any]:
    return {
        "type": "backlink",
        "domain_from": domain,
        "domain_from_rank": rank,
        "backlink_spam_score": spam,
        "first_seen": first_seen,
    }


def serp_item(domain: str, position: int, item_type: str = "organic") -> Dict[str, Any]:
    return {"type": item_type, "domain": domain, "rank_group": position, "rank_absolute": position}


SAMPLE_SERPS: Dict[str, List[Dict[str, Any]]] = {
    "plumber sydney": [
        serp_item("hipages.com.au", 1),
        serp_item("www.sydneyplumbing.com.au", 2),
        serp_item("acme.com.au", 3),
        serp_item("fastfix.com.au", 4),
        serp_item("yelp.com", 5),
        serp_item("pipepros.com.au", 6),
        serp_item("globalplumbing.com", 7),
        serp_item("drainmasters.com.au", 8),
        serp_item("ad.example.com.au", 1, item_type="paid"),
    ],
    "emergency plumber": [
        serp_item("fastfix.com.au", 1),
        serp_item("sydneyplumbing.com.au", 2),
        serp_item("oneflare.com.au", 3),
        serp_item("247plumbers.com.au", 4),
        serp_item("hotwater.com.au", 5),
        serp_item("pipepros.com.au", 9),
    ],
}

SAMPLE_BACKLINKS: Dict[str, List[Dict[str, Any]]] = {
    "acme.com.au": [
        backlink_row("news.com.au", 80),
        backlink_row("www.news.com.au", 70),
        backlink_row("localpaper.com.au", 45, first_seen=recent_link()),
        backlink_row("tradesdirectory.com.au", 30),
        backlink_row("spammy.net", 60, spam=75),
        backlink_row("tiny-blog.com", 5),
    ],
    "fastfix.com.au": [
        backlink_row("news.com.au", 80),
        backlink_row("abc.net.au", 90, first_seen=recent_link()),
        backlink_row("homeguide.com.au", 55),
        backlink_row("renovate.com.au", 38, first_seen=recent_link(60)),
    ],
    "sydneyplumbing.com.au": [
        backlink_row("abc.net.au", 90),
        backlink_row("homeguide.com.au", 55, first_seen=recent_link()),
        backlink_row("smallbiz.com.au", 25),
    ],
    "pipepros.com.au": [
        backlink_row("abc.net.au", 88),
        backlink_row("renovate.com.au", 38),
        backlink_row("homeguide.com.au", 52),
    ],
    "247plumbers.com.au": [
        backlink_row("smallbiz.com.au", 25, first_seen=recent_link()),
    ],
    "hotwater.com.au": [
        backlink_row("energy.gov.au", 70),
        backlink_row("renovate.com.au", 38),
    ],
    "drainmasters.com.au": [
        backlink_row("drains-weekly.com.au", 22),
    ],
}


class FakeDataForSEOClient:
    """
    Scripted stand-in for DataForSEOClient.

    Records calls and can run a hook before each backlink request, which is
    how tests cancel or fail a job mid-run.
    """

    def __init__(
        self,
        serps: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        backlinks: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        on_backlinks: Optional[Callable[[str], None]] = None,
        cost_per_call: float = 0.02,
        latency: float = 0.0,
    ):
        self.serps = SAMPLE_SERPS if serps is None else serps
        self.backlinks = SAMPLE_BACKLINKS if backlinks is None else backlinks
        self.on_backlinks = on_backlinks
        self.cost_per_call = cost_per_call
        self.latency = latency
        self.total_cost = 0.0
        self.serp_calls: List[str] = []
        self.backlink_calls: List[str] = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True

    async def get_serp_results(self, keyword: str, location_code: int, language_code: str = "en", depth: int = 10):
        self.serp_calls.append(keyword)
        self.total_cost += self.cost_per_call
        return list(self.serps.get(keyword, []))

    async def get_backlinks(self, target: str, limit: int = 1000):
        self.backlink_calls.append(target)
        if self.on_backlinks is not None:
            self.on_backlinks(target)
        if self.latency:
            await asyncio.sleep(self.latency)
        self.total_cost += self.cost_per_call
        return list(self.backlinks.get(target, []))


@pytest.fixture
def fake_client() -> FakeDataForSEOClient:
    return FakeDataForSEOClient()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
