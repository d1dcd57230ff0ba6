"""
Test Suite for Competitor Resolution

Tests SERP-based competitor discovery:
- Exclusion of directories, social platforms and the customer itself
- Domain suffix restriction
- Ranking by keyword coverage, then average position
- Blocklist predicate
"""

import pytest

from linkscore.collector.competitors import CompetitorCandidate, CompetitorResolver, rank_candidates
from linkscore.utils.domain_filter import canonicalize_host, is_excluded_domain

from conftest import FakeDataForSEOClient, serp_item

KEYWORDS = ["plumber sydney", "emergency plumber"]
SYDNEY = 1000286


# =============================================================================
# DOMAIN FILTER TESTS
# =============================================================================


class TestDomainFilter:

    def test_canonicalize_host(self):
        assert canonicalize_host("WWW.Example.com.") == "example.com"
        assert canonicalize_host("www.www.example.com") == "example.com"
        assert canonicalize_host("  shop.example.com ") == "shop.example.com"
        assert canonicalize_host(None) == ""

    def test_excluded_domains(self):
        assert is_excluded_domain("hipages.com.au")
        assert is_excluded_domain("www.facebook.com")
        assert is_excluded_domain("au.yelp.com")
        assert is_excluded_domain("")
        assert not is_excluded_domain("fastfix.com.au")


# =============================================================================
# RANKING TESTS
# =============================================================================


class TestRankCandidates:

    def test_coverage_then_position_then_name(self):
        candidates = [
            CompetitorCandidate("single.com.au", {"a": 1}),
            CompetitorCandidate("zeta.com.au", {"a": 3, "b": 3}),
            CompetitorCandidate("alpha.com.au", {"a": 2, "b": 4}),
            CompetitorCandidate("best.com.au", {"a": 1, "b": 2}),
        ]
        assert [c.domain for c in rank_candidates(candidates)] == [
            "best.com.au", "alpha.com.au", "zeta.com.au", "single.com.au",
        ]


# =============================================================================
# RESOLVER TESTS
# =============================================================================


class TestCompetitorResolver:

    @pytest.mark.asyncio
    async def test_resolves_sample_serps(self, fake_client):
        resolver = CompetitorResolver(fake_client, max_competitors=5, domain_suffix=".com.au")
        competitors = await resolver.resolve_competitors(KEYWORDS, SYDNEY, "acme.com.au")

        assert competitors == [
            "sydneyplumbing.com.au",
            "fastfix.com.au",
            "pipepros.com.au",
            "247plumbers.com.au",
            "hotwater.com.au",
        ]
        assert sorted(fake_client.serp_calls) == sorted(KEYWORDS)

    @pytest.mark.asyncio
    async def test_bounded_by_max(self, fake_client):
        resolver = CompetitorResolver(fake_client, max_competitors=2, domain_suffix=".com.au")
        assert len(await resolver.resolve_competitors(KEYWORDS, SYDNEY, "acme.com.au")) == 2

    @pytest.mark.asyncio
    async def test_without_suffix_restriction(self, fake_client):
        resolver = CompetitorResolver(fake_client, max_competitors=10)
        competitors = await resolver.resolve_competitors(KEYWORDS, SYDNEY, "acme.com.au")
        assert "globalplumbing.com" in competitors
        assert "yelp.com" not in competitors
        assert "ad.example.com.au" not in competitors

    @pytest.mark.asyncio
    async def test_blocklist_predicate(self, fake_client):
        resolver = CompetitorResolver(
            fake_client,
            domain_suffix=".com.au",
            is_blocked=lambda domain: domain == "fastfix.com.au",
        )
        competitors = await resolver.resolve_competitors(KEYWORDS, SYDNEY, "acme.com.au")
        assert "fastfix.com.au" not in competitors

    @pytest.mark.asyncio
    async def test_serp_depth(self):
        client = FakeDataForSEOClient(serps={
            "kw": [serp_item(f"site{i}.com.au", i + 1) for i in range(20)],
        })
        resolver = CompetitorResolver(client, max_competitors=50, serp_depth=10)
        candidates = await resolver.find_candidates(["kw"], SYDNEY, "acme.com.au")
        assert len(candidates) == 10

    @pytest.mark.asyncio
    async def test_position_falls_back_to_index(self):
        client = FakeDataForSEOClient(serps={
            "kw": [{"type": "organic", "domain": "first.com.au"}, {"type": "organic", "domain": "second.com.au"}],
        })
        resolver = CompetitorResolver(client)
        candidates = await resolver.find_candidates(["kw"], SYDNEY, "acme.com.au")
        assert [(c.domain, c.positions["kw"]) for c in candidates] == [("first.com.au", 1), ("second.com.au", 2)]

    @pytest.mark.asyncio
    async def test_fewer_than_two_is_not_an_error(self):
        client = FakeDataForSEOClient(serps={"kw": [serp_item("only.com.au", 1), serp_item("facebook.com", 2)]})
        resolver = CompetitorResolver(client)
        assert await resolver.resolve_competitors(["kw"], SYDNEY, "acme.com.au") == ["only.com.au"]
