"""
Test Suite for the LinkScore Calculator

Tests the five scoring components and the composite:
- Competitive position (0-30)
- Performance vs expected (0-25)
- Velocity comparison (0-20)
- Market share growth (0-15)
- Cost efficiency (0-10)
- Composite clamping and derived values
"""

import pytest

from linkscore.scoring.link_score import (
    COST_PER_LINK_BENCHMARK,
    CompetitorHistory,
    ScoringInput,
    calculate_cost_per_link,
    calculate_expected_links,
    calculate_link_score,
    cost_efficiency_from_ratio,
    market_share_from_change,
    score_competitive_position,
    score_cost_efficiency,
    score_market_share,
    score_performance,
    score_velocity,
)


def competitors(*pairs):
    return [CompetitorHistory(f"rival{i}.com.au", start, now) for i, (start, now) in enumerate(pairs)]


# =============================================================================
# EXPECTATION MODEL TESTS
# =============================================================================


class TestExpectationModel:
    """Test the $667-per-link benchmark helpers."""

    def test_expected_links_rounds(self):
        """2000 * 9 / 667 = 26.99 -> 27."""
        assert calculate_expected_links(2000, 9) == 27

    def test_expected_links_acme_campaign(self):
        assert calculate_expected_links(3000, 12) == 54

    def test_expected_links_zero_inputs(self):
        assert calculate_expected_links(0, 12) == 0
        assert calculate_expected_links(3000, 0) == 0

    def test_cost_per_link(self):
        assert calculate_cost_per_link(36000, 18) == 2000

    def test_cost_per_link_undefined_without_gains(self):
        assert calculate_cost_per_link(36000, 0) is None
        assert calculate_cost_per_link(36000, -3) is None


# =============================================================================
# COMPETITIVE POSITION TESTS
# =============================================================================


class TestCompetitivePosition:
    """Test customer links vs competitor average."""

    @pytest.mark.parametrize("current,average,expected", [
        (120, 100, 30),
        (100, 100, 27),
        (80, 100, 24),
        (60, 100, 18),
        (40, 100, 12),
        (20, 100, 6),
        (10, 100, 2),
        (0, 100, 2),
    ])
    def test_ratio_breakpoints(self, current, average, expected):
        assert score_competitive_position(current, average, 3) == expected

    def test_neutral_with_fewer_than_two_competitors(self):
        assert score_competitive_position(50, 100, 1) == 15
        assert score_competitive_position(50, 0, 0) == 15

    def test_competitors_without_links(self):
        """Zero competitor average: any links at all is a lead."""
        assert score_competitive_position(5, 0, 3) == 30
        assert score_competitive_position(0, 0, 3) == 15


# =============================================================================
# PERFORMANCE TESTS
# =============================================================================


class TestPerformance:
    """Test links gained vs links the spend should have bought."""

    @pytest.mark.parametrize("gained,expected_links,score", [
        (60, 50, 25),
        (50, 50, 22),
        (40, 50, 18),
        (30, 50, 14),
        (20, 50, 10),
        (10, 50, 6),
        (5, 50, 2),
    ])
    def test_percentage_breakpoints(self, gained, expected_links, score):
        result, _ = score_performance(gained, expected_links)
        assert result == score

    def test_returns_percentage(self):
        _, pct = score_performance(27, 54)
        assert pct == pytest.approx(50.0)

    def test_no_gains_scores_zero(self):
        assert score_performance(0, 54)[0] == 0
        assert score_performance(-4, 54)[0] == 0

    def test_neutral_when_nothing_expected(self):
        assert score_performance(10, 0) == (12, 0.0)


# =============================================================================
# VELOCITY TESTS
# =============================================================================


class TestVelocity:
    """Test monthly acquisition rate vs competitor mean rate."""

    def test_neutral_with_fewer_than_two_competitors(self):
        assert score_velocity(10, 12, competitors((0, 10))) == 10

    def test_matching_competitor_rate(self):
        assert score_velocity(12, 12, competitors((0, 12), (10, 22))) == 15

    def test_far_ahead(self):
        assert score_velocity(30, 12, competitors((0, 12), (0, 12))) == 20

    def test_far_behind(self):
        assert score_velocity(1, 12, competitors((0, 12), (0, 12))) == 1

    def test_client_lost_links(self):
        assert score_velocity(-2, 12, competitors((0, 12), (0, 12))) == 1

    def test_competitors_not_growing(self):
        assert score_velocity(5, 12, competitors((10, 10), (20, 15))) == 20
        assert score_velocity(0, 12, competitors((10, 10), (20, 15))) == 10


# =============================================================================
# MARKET SHARE TESTS
# =============================================================================


class TestMarketShare:
    """Test share of the combined authority-link pool."""

    @pytest.mark.parametrize("change,expected", [
        (0.022, 15),
        (0.015, 13),
        (0.007, 11),
        (0.0, 8),
        (-0.003, 5),
        (-0.007, 3),
        (-0.05, 1),
    ])
    def test_change_breakpoints(self, change, expected):
        assert market_share_from_change(change) == expected

    def test_neutral_without_competitors(self):
        assert score_market_share(10, 50, []) == 8

    def test_neutral_with_empty_pool(self):
        assert score_market_share(0, 10, competitors((0, 5), (0, 5))) == 8
        assert score_market_share(0, 0, competitors((0, 0), (0, 0))) == 8

    def test_growing_share(self):
        # start 10/100 = 0.10, now 30/150 = 0.20
        assert score_market_share(10, 30, competitors((40, 60), (50, 60))) == 15

    def test_shrinking_share(self):
        # start 30/100 = 0.30, now 30/200 = 0.15
        assert score_market_share(30, 30, competitors((30, 80), (40, 90))) == 1


# =============================================================================
# COST EFFICIENCY TESTS
# =============================================================================


class TestCostEfficiency:
    """Test expected vs actual cost per link."""

    @pytest.mark.parametrize("ratio,expected", [
        (1.6, 10),
        (1.3, 9),
        (1.0, 8),
        (0.85, 6),
        (0.6, 4),
        (0.5, 2),
        (0.3, 1),
    ])
    def test_ratio_breakpoints(self, ratio, expected):
        assert cost_efficiency_from_ratio(ratio) == expected

    def test_neutral_when_cost_unavailable(self):
        assert score_cost_efficiency(None) == 5
        assert score_cost_efficiency(0) == 5

    def test_neutral_when_expected_is_zero(self):
        assert score_cost_efficiency(500, expected_cost_per_link=0) == 5

    def test_cheap_links(self):
        assert score_cost_efficiency(COST_PER_LINK_BENCHMARK / 2) == 10


# =============================================================================
# COMPOSITE TESTS
# =============================================================================


class TestCalculateLinkScore:
    """Test the full breakdown."""

    def test_overall_is_component_sum(self):
        result = calculate_link_score(ScoringInput(
            monthly_spend=3000,
            investment_months=12,
            current_links=40,
            links_gained=25,
            competitors=competitors((40, 60), (30, 45), (20, 30)),
        ))
        components = (
            result.competitive + result.performance + result.velocity
            + result.market_share + result.cost_efficiency
        )
        assert result.overall == components
        assert 0 <= result.overall <= 100

    def test_no_competitors_uses_neutral_values(self):
        result = calculate_link_score(ScoringInput(
            monthly_spend=2000,
            investment_months=9,
            current_links=30,
            links_gained=27,
        ))
        assert result.competitive == 15
        assert result.velocity == 10
        assert result.market_share == 8
        assert result.expected_links == 27
        assert result.competitor_average == 0.0

    def test_zero_gains(self):
        result = calculate_link_score(ScoringInput(
            monthly_spend=5000,
            investment_months=18,
            current_links=10,
            links_gained=0,
            competitors=competitors((50, 80), (60, 90)),
        ))
        assert result.performance == 0
        assert result.cost_per_link is None
        assert result.cost_efficiency == 5
        assert result.velocity == 1

    def test_strong_campaign(self):
        result = calculate_link_score(ScoringInput(
            monthly_spend=1000,
            investment_months=12,
            current_links=100,
            links_gained=40,
            competitors=competitors((40, 50), (45, 55), (50, 60)),
        ))
        assert result.competitive == 30
        assert result.performance == 25
        assert result.velocity == 20
        assert result.cost_efficiency == 10
        assert result.overall >= 85

    def test_derived_values_rounded(self):
        result = calculate_link_score(ScoringInput(
            monthly_spend=3000,
            investment_months=12,
            current_links=10,
            links_gained=7,
            competitors=competitors((1, 3), (2, 5), (1, 2)),
        ))
        assert result.cost_per_link == pytest.approx(5142.86)
        assert result.competitor_average == pytest.approx(3.3)
        assert result.performance_pct == pytest.approx(13.0)

    def test_to_dict(self):
        result = calculate_link_score(ScoringInput(3000, 12, 10, 5))
        data = result.to_dict()
        assert set(data) >= {"overall", "competitive", "performance", "velocity", "market_share", "cost_efficiency"}
