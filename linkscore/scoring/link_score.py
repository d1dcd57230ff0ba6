"""
LinkScore Calculator

Composite benchmark (0-100) of a customer's authority link building,
built from five components:

1. Competitive Position (0-30) - authority links vs competitor average
2. Performance vs Expected (0-25) - links gained vs what the spend should buy
3. Velocity Comparison (0-20) - monthly acquisition rate vs competitors
4. Market Share Growth (0-15) - change in share of the combined link pool
5. Cost Efficiency (0-10) - expected vs actual cost per authority link

Benchmark: $667 of monthly spend buys one authority link per month.

Formula:
    LinkScore = clamp(Competitive + Performance + Velocity + MarketShare + CostEfficiency, 0, 100)

All functions are pure; the orchestrator feeds them already-retrieved metrics.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

COST_PER_LINK_BENCHMARK = 667

# Fewer usable competitors than this and comparative components go neutral
MIN_COMPETITORS = 2

NEUTRAL_COMPETITIVE = 15
NEUTRAL_PERFORMANCE = 12
NEUTRAL_VELOCITY = 10
NEUTRAL_MARKET_SHARE = 8
NEUTRAL_COST_EFFICIENCY = 5

COMPETITIVE_BREAKPOINTS = ((1.2, 30), (1.0, 27), (0.8, 24), (0.6, 18), (0.4, 12), (0.2, 6))
PERFORMANCE_BREAKPOINTS = ((120, 25), (100, 22), (80, 18), (60, 14), (40, 10), (20, 6))
VELOCITY_BREAKPOINTS = ((1.5, 20), (1.2, 17), (1.0, 15), (0.8, 12), (0.6, 9), (0.4, 6), (0.2, 3))
MARKET_SHARE_BREAKPOINTS = ((0.02, 15), (0.01, 13), (0.005, 11), (0.0, 8), (-0.005, 5), (-0.01, 3))
COST_EFFICIENCY_BREAKPOINTS = ((1.5, 10), (1.2, 9), (1.0, 8), (0.8, 6), (0.6, 4), (0.4, 2))


def _tier(value: float, breakpoints: Sequence[Tuple[float, int]], floor: int) -> int:
    """First score whose threshold `value` reaches, else `floor`."""
    for threshold, score in breakpoints:
        if value >= threshold:
            return score
    return floor


@dataclass
class CompetitorHistory:
    """Authority link counts for one competitor at campaign start and now."""
    domain: str
    links_at_start: int
    links_now: int

    @property
    def links_gained(self) -> int:
        return self.links_now - self.links_at_start

    def to_dict(self) -> Dict[str, int]:
        return {
            "domain": self.domain,
            "linksAtStart": self.links_at_start,
            "linksNow": self.links_now,
            "linksGained": self.links_gained,
        }


@dataclass
class ScoringInput:
    """Everything the scoring engine needs, already retrieved."""
    monthly_spend: float
    investment_months: int
    current_links: int
    links_gained: int
    competitors: List[CompetitorHistory] = field(default_factory=list)

    @property
    def total_investment(self) -> float:
        return self.monthly_spend * self.investment_months

    @property
    def links_at_start(self) -> int:
        return self.current_links - self.links_gained

    @property
    def competitor_average(self) -> float:
        if not self.competitors:
            return 0.0
        return sum(c.links_now for c in self.competitors) / len(self.competitors)


@dataclass
class LinkScoreBreakdown:
    """Five components plus the derived values the results page shows."""
    overall: int
    competitive: int
    performance: int
    velocity: int
    market_share: int
    cost_efficiency: int

    expected_links: int
    performance_pct: float
    cost_per_link: Optional[float]
    competitor_average: float

    def to_dict(self) -> Dict:
        return asdict(self)


# =============================================================================
# EXPECTATION MODEL
# =============================================================================

def calculate_expected_links(monthly_spend: float, investment_months: int) -> int:
    """Authority links the spend should have bought at the $667 benchmark."""
    if monthly_spend <= 0 or investment_months <= 0:
        return 0
    return int(round(monthly_spend * investment_months / COST_PER_LINK_BENCHMARK))


def calculate_cost_per_link(total_investment: float, links_gained: int) -> Optional[float]:
    """Actual spend per authority link gained, None when nothing was gained."""
    if links_gained <= 0 or total_investment <= 0:
        return None
    return total_investment / links_gained


# =============================================================================
# COMPONENTS
# =============================================================================

def score_competitive_position(current_links: int, competitor_average: float, competitor_count: int) -> int:
    """0-30 from the ratio of customer links to the competitor average."""
    if competitor_count < MIN_COMPETITORS:
        return NEUTRAL_COMPETITIVE
    if competitor_average <= 0:
        return 30 if current_links > 0 else NEUTRAL_COMPETITIVE
    return _tier(current_links / competitor_average, COMPETITIVE_BREAKPOINTS, 2)


def score_performance(links_gained: int, expected_links: int) -> Tuple[int, float]:
    """
    0-25 from links gained as a percentage of expected.

    Returns:
        Tuple of (score, performance percentage)
    """
    if expected_links <= 0:
        return NEUTRAL_PERFORMANCE, 0.0
    pct = links_gained / expected_links * 100
    if links_gained <= 0:
        return 0, pct
    return _tier(pct, PERFORMANCE_BREAKPOINTS, 2), pct


def score_velocity(
    links_gained: int,
    investment_months: int,
    competitors: Sequence[CompetitorHistory],
) -> int:
    """0-20 from monthly acquisition rate vs the competitor mean rate."""
    if len(competitors) < MIN_COMPETITORS or investment_months <= 0:
        return NEUTRAL_VELOCITY

    client_rate = links_gained / investment_months
    competitor_rate = sum(c.links_gained for c in competitors) / len(competitors) / investment_months

    if competitor_rate <= 0:
        return 20 if client_rate > 0 else NEUTRAL_VELOCITY
    if client_rate <= 0:
        return 1
    return _tier(client_rate / competitor_rate, VELOCITY_BREAKPOINTS, 1)


def score_market_share(
    client_start: int,
    client_now: int,
    competitors: Sequence[CompetitorHistory],
) -> int:
    """
    0-15 from the change in the customer's share of the combined link pool.

    Neutral 8 with no competitors or an empty pool at either time point.
    """
    if not competitors:
        return NEUTRAL_MARKET_SHARE

    pool_start = client_start + sum(c.links_at_start for c in competitors)
    pool_now = client_now + sum(c.links_now for c in competitors)
    if pool_start <= 0 or pool_now <= 0:
        return NEUTRAL_MARKET_SHARE

    share_change = client_now / pool_now - client_start / pool_start
    return market_share_from_change(share_change)


def market_share_from_change(share_change: float) -> int:
    return _tier(share_change, MARKET_SHARE_BREAKPOINTS, 1)


def score_cost_efficiency(actual_cost_per_link: Optional[float], expected_cost_per_link: float = COST_PER_LINK_BENCHMARK) -> int:
    """0-10 from expected/actual cost per link. Neutral 5 when either side is missing or zero."""
    if not actual_cost_per_link or not expected_cost_per_link:
        return NEUTRAL_COST_EFFICIENCY
    return cost_efficiency_from_ratio(expected_cost_per_link / actual_cost_per_link)


def cost_efficiency_from_ratio(ratio: float) -> int:
    return _tier(ratio, COST_EFFICIENCY_BREAKPOINTS, 1)


# =============================================================================
# COMPOSITE
# =============================================================================

def calculate_link_score(data: ScoringInput) -> LinkScoreBreakdown:
    """
    Calculate the full LinkScore breakdown.

    Args:
        data: ScoringInput with campaign and competitor metrics

    Returns:
        LinkScoreBreakdown whose overall equals the component sum, clamped to 0-100
    """
    competitor_average = data.competitor_average
    expected_links = calculate_expected_links(data.monthly_spend, data.investment_months)
    cost_per_link = calculate_cost_per_link(data.total_investment, data.links_gained)

    competitive = score_competitive_position(data.current_links, competitor_average, len(data.competitors))
    performance, performance_pct = score_performance(data.links_gained, expected_links)
    velocity = score_velocity(data.links_gained, data.investment_months, data.competitors)
    market_share = score_market_share(data.links_at_start, data.current_links, data.competitors)
    cost_efficiency = score_cost_efficiency(cost_per_link)

    overall = max(0, min(100, competitive + performance + velocity + market_share + cost_efficiency))

    logger.debug(
        f"LinkScore {overall}: competitive={competitive} performance={performance} "
        f"velocity={velocity} market_share={market_share} cost_efficiency={cost_efficiency}"
    )

    return LinkScoreBreakdown(
        overall=overall,
        competitive=competitive,
        performance=performance,
        velocity=velocity,
        market_share=market_share,
        cost_efficiency=cost_efficiency,
        expected_links=expected_links,
        performance_pct=round(performance_pct, 1),
        cost_per_link=round(cost_per_link, 2) if cost_per_link is not None else None,
        competitor_average=round(competitor_average, 1),
    )
