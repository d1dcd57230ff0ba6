"""
LinkScore interpretation: grade, label, message, urgency and result strategy.

Every function here is a pure, total function of the overall score.
Webhook consumers and the results page branch on the strategy type, so the
cutoffs must not drift.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List

GRADE_CUTOFFS = ((90, "A+"), (80, "A"), (70, "B+"), (60, "B"), (50, "C+"), (40, "C"), (30, "D"))
LABEL_CUTOFFS = (
    (90, "Exceptional"),
    (80, "Excellent"),
    (70, "Good"),
    (60, "Average"),
    (50, "Below Average"),
    (40, "Poor"),
    (30, "Critical"),
)


class StrategyType(str, Enum):
    CRISIS = "CRISIS"
    OPPORTUNITY = "OPPORTUNITY"
    OPTIMIZATION = "OPTIMIZATION"
    SUCCESS = "SUCCESS"


@dataclass(frozen=True)
class ResultStrategy:
    type: StrategyType
    headline: str
    subheadline: str
    cta: str
    urgency: str
    lead_type: str

    def to_dict(self) -> Dict[str, str]:
        data = asdict(self)
        data["type"] = self.type.value
        data["leadType"] = data.pop("lead_type")
        return data


STRATEGIES: Dict[StrategyType, ResultStrategy] = {
    StrategyType.CRISIS: ResultStrategy(
        StrategyType.CRISIS,
        "Your SEO Isn't Working",
        "Critical issues detected - immediate action required",
        "Get a Free Emergency SEO Audit",
        "CRITICAL",
        "PRIORITY",
    ),
    StrategyType.OPPORTUNITY: ResultStrategy(
        StrategyType.OPPORTUNITY,
        "Your SEO Has Potential",
        "Significant opportunities identified for improvement",
        "Discover Your Biggest Link Building Opportunities",
        "MEDIUM",
        "NURTURE",
    ),
    StrategyType.OPTIMIZATION: ResultStrategy(
        StrategyType.OPTIMIZATION,
        "Your SEO Shows Promise",
        "Good foundation with room for optimization",
        "Get a Personalized SEO Growth Plan",
        "MEDIUM",
        "NURTURE",
    ),
    StrategyType.SUCCESS: ResultStrategy(
        StrategyType.SUCCESS,
        "Your SEO Is Working Well",
        "Let's expand your dominance to new markets",
        "Book a Strategy Session to Analyze New Opportunities",
        "LOW",
        "POTENTIAL",
    ),
}

RECOMMENDATIONS: Dict[StrategyType, List[str]] = {
    StrategyType.CRISIS: [
        "Conduct immediate SEO audit and provider review",
        "Focus on high-authority link acquisition",
        "Review and optimize link building strategy",
    ],
    StrategyType.OPPORTUNITY: [
        "Target competitor link gaps for quick wins",
        "Increase link building velocity",
        "Improve content quality and outreach",
    ],
    StrategyType.SUCCESS: [
        "Expand to new target keywords and markets",
        "Maintain current link building pace",
        "Focus on high-authority publications",
    ],
    StrategyType.OPTIMIZATION: [
        "Optimize current link building processes",
        "Target high-impact link opportunities",
        "Improve competitive positioning",
    ],
}


def get_grade(score: float) -> str:
    for cutoff, grade in GRADE_CUTOFFS:
        if score >= cutoff:
            return grade
    return "F"


def get_label(score: float) -> str:
    for cutoff, label in LABEL_CUTOFFS:
        if score >= cutoff:
            return label
    return "Failure"


def get_message(score: float) -> str:
    if score >= 80:
        return "Outstanding performance - you're outperforming most competitors with excellent ROI."
    if score >= 60:
        return "Solid performance with room for improvement. Your SEO is working but could be optimized."
    if score >= 40:
        return "Below average performance indicates significant issues with your current SEO strategy."
    return "Critical performance failure. Your SEO investment requires immediate strategic overhaul."


def get_urgency(score: float) -> str:
    if score <= 40:
        return "CRITICAL"
    if score <= 50:
        return "HIGH"
    if score <= 70:
        return "MEDIUM"
    return "LOW"


def classify_strategy(score: float) -> StrategyType:
    """CRISIS <=40, OPPORTUNITY <=60, SUCCESS >=80, OPTIMIZATION in between."""
    if score <= 40:
        return StrategyType.CRISIS
    if score <= 60:
        return StrategyType.OPPORTUNITY
    if score >= 80:
        return StrategyType.SUCCESS
    return StrategyType.OPTIMIZATION


def get_strategy(score: float) -> ResultStrategy:
    return STRATEGIES[classify_strategy(score)]


def get_recommendations(strategy: StrategyType) -> List[str]:
    return list(RECOMMENDATIONS[strategy])


def get_performance_summary(
    strategy: StrategyType,
    investment_months: int,
    total_investment: float,
    link_gaps_total: int,
    current_links: int,
) -> str:
    """One-paragraph summary shown above the score breakdown."""
    if strategy == StrategyType.CRISIS:
        return (
            f"After {investment_months} months and ${total_investment:,.0f} invested, your SEO is "
            f"significantly underperforming. Immediate intervention required."
        )
    if strategy == StrategyType.OPPORTUNITY:
        return (
            f"Your SEO shows potential but needs optimization. With {link_gaps_total} link opportunities "
            f"identified, there's room for substantial improvement."
        )
    if strategy == StrategyType.SUCCESS:
        return (
            f"Your SEO is performing well with {current_links} authority links. You're outperforming "
            f"most competitors in your market."
        )
    return (
        "Your SEO has a solid foundation with opportunities for growth. Strategic improvements could "
        "boost your LinkScore significantly."
    )


def interpret(score: float) -> Dict[str, object]:
    """Grade, label, message, urgency and strategy for a score."""
    return {
        "grade": get_grade(score),
        "label": get_label(score),
        "message": get_message(score),
        "urgency": get_urgency(score),
        "strategy": get_strategy(score).to_dict(),
    }
