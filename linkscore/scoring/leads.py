"""
Red flags and lead scoring.

Lead scores are internal sales signals and are independent of the LinkScore
itself:
- Priority (0-100): how urgently sales should call
- Potential (0-100): long-term account value
- Overall: rounded average of the two
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from linkscore.collector.locations import HIGH_VALUE_LOCATIONS

from .link_score import COST_PER_LINK_BENCHMARK

logger = logging.getLogger(__name__)

CRITICAL = "CRITICAL"
HIGH = "HIGH"


@dataclass
class RedFlag:
    type: str
    severity: str
    message: str
    impact: str
    recommendation: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class LeadScore:
    priority: int
    potential: int
    overall: int
    lead_type: str
    urgency: str

    def to_dict(self) -> Dict:
        return {
            "priority": self.priority,
            "potential": self.potential,
            "overall": self.overall,
            "leadType": self.lead_type,
            "urgency": self.urgency,
        }


def calculate_gap_percentage(current_links: int, competitor_average: float) -> int:
    """How far behind the competitor average the customer is, in percent."""
    if competitor_average <= 0:
        return 0
    return int(round((competitor_average - current_links) / competitor_average * 100))


# =============================================================================
# RED FLAGS
# =============================================================================

def detect_red_flags(
    monthly_spend: float,
    investment_months: int,
    links_gained: int,
    expected_links: int,
    performance_pct: float,
    current_links: int,
    competitor_average: float,
    cost_per_link: Optional[float],
    link_gaps_total: int,
) -> List[RedFlag]:
    """
    Detect campaign red flags.

    Returns:
        Flags in a fixed order (the order the sales team reads them)
    """
    flags: List[RedFlag] = []
    total_investment = monthly_spend * investment_months
    gap_pct = calculate_gap_percentage(current_links, competitor_average)

    if investment_months >= 12 and performance_pct < 30:
        flags.append(RedFlag(
            "SEVERE_UNDERPERFORMANCE", CRITICAL,
            f"After {investment_months} months and ${total_investment:,.0f} invested, you've gained only "
            f"{links_gained} authority links vs {expected_links} expected.",
            "Your SEO investment is severely underperforming industry benchmarks.",
            "Immediate SEO strategy review required.",
        ))

    if gap_pct > 70:
        flags.append(RedFlag(
            "MASSIVE_COMPETITIVE_GAP", CRITICAL,
            f"You have {current_links} authority links vs competitor average of {competitor_average:.0f}.",
            f"You're {gap_pct}% behind your direct competitors.",
            "Aggressive link building campaign needed to catch up.",
        ))

    if cost_per_link is not None and cost_per_link > 2000:
        flags.append(RedFlag(
            "POOR_COST_EFFICIENCY", HIGH,
            f"Each authority link costs ${cost_per_link:,.0f} vs expected ~${COST_PER_LINK_BENCHMARK}.",
            "You're paying 3x industry rates for link building.",
            "SEO provider efficiency review recommended.",
        ))

    if link_gaps_total > 100:
        flags.append(RedFlag(
            "EXCESSIVE_MISSED_OPPORTUNITIES", HIGH,
            f"{link_gaps_total} authority domains link to competitors but not you.",
            "Significant untapped link building potential identified.",
            "Focus on competitor link gap analysis.",
        ))

    if investment_months >= 18 and performance_pct < 50:
        flags.append(RedFlag(
            "WASTED_INVESTMENT", CRITICAL,
            f"{investment_months} months invested with minimal progress.",
            "Extended timeline suggests fundamental strategy issues.",
            "Complete SEO strategy overhaul needed.",
        ))

    if investment_months >= 6 and links_gained <= 0:
        flags.append(RedFlag(
            "ZERO_AUTHORITY_LINKS", CRITICAL,
            f"No authority links gained in {investment_months} months.",
            "Complete SEO campaign failure detected.",
            "Immediate provider change recommended.",
        ))

    if monthly_spend >= 5000 and performance_pct < 40:
        flags.append(RedFlag(
            "HIGH_SPEND_POOR_PERFORMANCE", CRITICAL,
            f"${monthly_spend:,.0f}/month with {round(performance_pct)}% performance.",
            "Premium investment not delivering premium results.",
            "Provider accountability review needed.",
        ))

    return flags


def critical_flags(flags: List[Dict]) -> List[Dict]:
    """Critical flags from their stored dict form."""
    return [f for f in flags or [] if f.get("severity") == CRITICAL]


# =============================================================================
# LEAD SCORING
# =============================================================================

def _priority_score(link_score: int, monthly_spend: float, investment_months: int, critical_count: int) -> int:
    score = 0

    # Budget size
    if monthly_spend >= 10000:
        score += 30
    elif monthly_spend >= 5000:
        score += 25
    elif monthly_spend >= 3000:
        score += 20
    elif monthly_spend >= 2000:
        score += 15
    else:
        score += 10

    # Crisis
    if link_score <= 30:
        score += 40
    elif link_score <= 40:
        score += 30
    elif link_score <= 50:
        score += 20
    elif link_score <= 60:
        score += 10

    # Time wasted
    if investment_months >= 18 and link_score <= 40:
        score += 15
    elif investment_months >= 12 and link_score <= 50:
        score += 10
    elif investment_months >= 6 and link_score <= 40:
        score += 8

    score += min(critical_count * 5, 15)
    return min(score, 100)


def _potential_score(
    link_score: int,
    monthly_spend: float,
    current_links: int,
    competitor_average: float,
    location: str,
) -> int:
    score = 0

    if monthly_spend >= 10000:
        score += 40
    elif monthly_spend >= 5000:
        score += 30
    elif monthly_spend >= 3000:
        score += 20
    else:
        score += 10

    if link_score >= 80:
        score += 30
    elif link_score >= 60:
        score += 20
    elif link_score >= 40:
        score += 10

    if competitor_average > 0:
        market_position = current_links / competitor_average
        if market_position >= 0.8:
            score += 20
        elif market_position >= 0.5:
            score += 15
        elif market_position >= 0.3:
            score += 10
        else:
            score += 5

    score += 10 if (location or "").lower() in HIGH_VALUE_LOCATIONS else 5
    return min(score, 100)


def get_lead_type(priority: int, link_score: int) -> str:
    if priority >= 70:
        return "PRIORITY"
    if link_score >= 80:
        return "POTENTIAL"
    return "NURTURE"


def get_lead_urgency(link_score: int, priority: int) -> str:
    if link_score <= 40 or priority >= 70:
        return "HIGH"
    if link_score <= 60 or priority >= 50:
        return "MEDIUM"
    return "LOW"


def calculate_lead_score(
    link_score: int,
    monthly_spend: float,
    investment_months: int,
    current_links: int,
    competitor_average: float,
    red_flags: List[RedFlag],
    location: str,
) -> LeadScore:
    """Priority, potential, their rounded average, lead type and urgency."""
    critical_count = sum(1 for f in red_flags if f.severity == CRITICAL)
    priority = _priority_score(link_score, monthly_spend, investment_months, critical_count)
    potential = _potential_score(link_score, monthly_spend, current_links, competitor_average, location)

    return LeadScore(
        priority=priority,
        potential=potential,
        overall=int(round((priority + potential) / 2)),
        lead_type=get_lead_type(priority, link_score),
        urgency=get_lead_urgency(link_score, priority),
    )


# =============================================================================
# SALES NOTES
# =============================================================================

def generate_sales_notes(
    link_score: int,
    monthly_spend: float,
    investment_months: int,
    current_links: int,
    competitor_average: float,
    red_flags: List[Dict],
) -> List[str]:
    """Short talking points for the sales call, most urgent first."""
    notes = []

    if link_score <= 40:
        notes.append(
            f"URGENT: LinkScore {link_score}/100 after ${monthly_spend * investment_months:,.0f} invested"
        )

    if monthly_spend >= 5000:
        notes.append(f"High-value client: ${monthly_spend:,.0f}/month budget")

    if competitor_average > 0 and current_links > 0 and competitor_average > current_links * 2:
        notes.append(
            f"Massive competitive gap: {competitor_average:.0f} vs {current_links} authority links"
        )

    if investment_months >= 12 and link_score <= 50:
        notes.append(f"Long-term underperformance: {investment_months} months with poor results")

    critical = critical_flags(red_flags)
    if critical:
        notes.append(f"Critical issues: {', '.join(f['type'] for f in critical)}")

    return notes
