"""
Results formatting.

Builds the results document from a stored AnalysisJob. Every value has a
fallback: a missing number reads as 0, a missing list as [], and
the interpretation is recomputed from the stored score rather than trusted
from another column.
"""

from typing import Any, Dict, List, Optional

from linkscore.collector.locations import get_location
from linkscore.database.models import AnalysisJob
from linkscore.scoring.interpretation import (
    classify_strategy,
    get_performance_summary,
    get_recommendations,
    interpret,
)
from linkscore.scoring.leads import get_lead_type, get_lead_urgency
from linkscore.scoring.link_score import calculate_cost_per_link, calculate_expected_links

TOP_LINK_GAPS = 10


def as_number(value: Any, default: float = 0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def as_int(value: Any, default: int = 0) -> int:
    return int(round(as_number(value, default)))


def as_list(value: Any) -> List:
    return list(value) if isinstance(value, (list, tuple)) else []


def iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def total_investment(job: AnalysisJob) -> float:
    stored = as_number(job.total_investment, None)
    if stored is not None:
        return stored
    return as_number(job.monthly_spend) * as_int(job.investment_months)


def cost_per_link(job: AnalysisJob) -> Optional[float]:
    stored = as_number(job.cost_per_authority_link, None)
    if stored:
        return stored
    computed = calculate_cost_per_link(total_investment(job), as_int(job.authority_links_gained))
    return round(computed, 2) if computed is not None else None


def score_breakdown(job: AnalysisJob) -> Dict[str, int]:
    return {
        "overall": as_int(job.link_score),
        "competitive": as_int(job.competitive_score),
        "performance": as_int(job.performance_score),
        "velocity": as_int(job.velocity_score),
        "marketShare": as_int(job.market_share_score),
        "costEfficiency": as_int(job.cost_efficiency_score),
    }


def lead_summary(job: AnalysisJob) -> Dict[str, Any]:
    score = as_int(job.link_score)
    priority = as_int(job.priority_score)
    potential = as_int(job.potential_score)
    return {
        "score": int(round((priority + potential) / 2)),
        "priority": priority,
        "potential": potential,
        "type": get_lead_type(priority, score),
        "urgency": get_lead_urgency(score, priority),
    }


def format_results(job: AnalysisJob, top_n: int = TOP_LINK_GAPS) -> Dict[str, Any]:
    """
    Full results document for a completed job.

    Args:
        job: Completed AnalysisJob row
        top_n: Number of link gap opportunities to include

    Returns:
        JSON-serializable results dict
    """
    score = as_int(job.link_score)
    strategy = classify_strategy(score)
    invested = total_investment(job)
    months = as_int(job.investment_months)
    current = as_int(job.current_authority_links)
    gaps_total = as_int(job.link_gaps_total)
    location = get_location(job.location)

    expected = job.expected_links
    if expected is None:
        expected = calculate_expected_links(as_number(job.monthly_spend), months)

    return {
        "analysis": {
            "id": job.id,
            "domain": job.domain,
            "company": job.company_name,
            "location": location.key,
            "locationName": location.name,
            "status": job.status.value,
            "createdAt": iso(job.created_at),
            "completedAt": iso(job.completed_at),
            "processingTime": as_number(job.processing_time),
        },
        "scores": score_breakdown(job),
        "interpretation": interpret(score),
        "investment": {
            "monthlySpend": as_number(job.monthly_spend),
            "investmentMonths": months,
            "totalInvestment": invested,
            "costPerLink": cost_per_link(job),
            "expectedLinks": as_int(expected),
        },
        "metrics": {
            "currentAuthorityLinks": current,
            "authorityLinksGained": as_int(job.authority_links_gained),
            "competitorAverage": as_number(job.competitor_average_links),
            "linkGapsTotal": gaps_total,
            "linkGapsHighPriority": as_int(job.link_gaps_high_priority),
        },
        "keywords": as_list(job.keywords),
        "competitors": as_list(job.competitors),
        "historical": as_list(job.historical_data),
        "linkGaps": as_list(job.link_gaps)[:top_n],
        "redFlags": as_list(job.red_flags),
        "lead": lead_summary(job),
        "insights": {
            "summary": get_performance_summary(strategy, months, invested, gaps_total, current),
            "recommendations": get_recommendations(strategy),
        },
    }
