"""
Scoring Module for the LinkScore Engine

1. **LinkScore** (0-100)
   Competitive (30) + Performance (25) + Velocity (20) + Market Share (15) + Cost Efficiency (10)

2. **Interpretation**
   Grade, label, urgency and the CRISIS/OPPORTUNITY/OPTIMIZATION/SUCCESS result strategy.

3. **Lead Scoring**
   Priority and potential scores, red flags and sales notes.

4. **Link Gaps**
   Authority domains linking to competitors but not the customer.

Example Usage:
    from linkscore.scoring import calculate_link_score, ScoringInput, CompetitorHistory

    breakdown = calculate_link_score(ScoringInput(
        monthly_spend=3000,
        investment_months=12,
        current_links=40,
        links_gained=25,
        competitors=[CompetitorHistory("rival.com.au", 50, 80)],
    ))
    print(breakdown.overall)
"""

from .link_score import (
    COST_PER_LINK_BENCHMARK,
    CompetitorHistory,
    LinkScoreBreakdown,
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
from .interpretation import (
    ResultStrategy,
    StrategyType,
    classify_strategy,
    get_grade,
    get_label,
    get_message,
    get_performance_summary,
    get_recommendations,
    get_strategy,
    get_urgency,
    interpret,
)
from .leads import (
    LeadScore,
    RedFlag,
    calculate_gap_percentage,
    calculate_lead_score,
    detect_red_flags,
    generate_sales_notes,
    get_lead_type,
    get_lead_urgency,
)
from .link_gaps import LinkGapRecord, LinkGapReport, assign_priority, compute_gaps

__all__ = [
    # LinkScore
    "COST_PER_LINK_BENCHMARK",
    "CompetitorHistory",
    "LinkScoreBreakdown",
    "ScoringInput",
    "calculate_cost_per_link",
    "calculate_expected_links",
    "calculate_link_score",
    "cost_efficiency_from_ratio",
    "market_share_from_change",
    "score_competitive_position",
    "score_cost_efficiency",
    "score_market_share",
    "score_performance",
    "score_velocity",

    # Interpretation
    "ResultStrategy",
    "StrategyType",
    "classify_strategy",
    "get_grade",
    "get_label",
    "get_message",
    "get_performance_summary",
    "get_recommendations",
    "get_strategy",
    "get_urgency",
    "interpret",

    # Lead scoring
    "LeadScore",
    "RedFlag",
    "calculate_gap_percentage",
    "calculate_lead_score",
    "detect_red_flags",
    "generate_sales_notes",
    "get_lead_type",
    "get_lead_urgency",

    # Link gaps
    "LinkGapRecord",
    "LinkGapReport",
    "assign_priority",
    "compute_gaps",
]
