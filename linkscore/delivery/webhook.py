"""
Webhook Delivery Module

Posts completed analyses to the configured CRM/automation endpoints.

Each endpoint is attempted independently with its own timeout. Delivery
failures are logged and reported back to the caller; they never change the
job's status.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from linkscore import __version__
from linkscore.collector.locations import get_location
from linkscore.database.models import AnalysisJob
from linkscore.output.results import (
    cost_per_link,
    lead_summary,
    score_breakdown,
    total_investment,
    as_int,
    as_list,
    as_number,
    iso,
)
from linkscore.scoring.interpretation import get_grade, get_label, get_strategy
from linkscore.scoring.leads import critical_flags, generate_sales_notes

logger = logging.getLogger(__name__)

USER_AGENT = "LinkScore/1.0"
WEBHOOK_SOURCE = "linkscore-analysis"


@dataclass
class DeliveryResult:
    """Result of one endpoint delivery."""
    url: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass
class NotificationReport:
    job_id: str
    results: List[DeliveryResult] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return any(r.success for r in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "delivered": self.delivered,
            "endpoints": [
                {"url": r.url, "success": r.success, "statusCode": r.status_code, "error": r.error}
                for r in self.results
            ],
        }


def _market_position(current: int, competitor_average: float) -> str:
    if competitor_average <= 0:
        return "UNKNOWN"
    ratio = current / competitor_average
    if ratio >= 1.0:
        return "LEADER"
    if ratio >= 0.8:
        return "COMPETITIVE"
    if ratio >= 0.5:
        return "CHALLENGER"
    return "BEHIND"


def build_payload(job: AnalysisJob) -> Dict[str, Any]:
    """Structured webhook payload for a completed job."""
    score = as_int(job.link_score)
    current = as_int(job.current_authority_links)
    competitor_average = as_number(job.competitor_average_links)
    red_flags = as_list(job.red_flags)
    competitors = as_list(job.competitors)
    location = get_location(job.location)
    lead = lead_summary(job)
    monthly_spend = as_number(job.monthly_spend)
    months = as_int(job.investment_months)

    results = score_breakdown(job)
    results.update({
        "grade": get_grade(score),
        "label": get_label(score),
        "metrics": {
            "currentAuthorityLinks": current,
            "authorityLinksGained": as_int(job.authority_links_gained),
            "expectedLinks": as_int(job.expected_links),
            "competitorAverage": competitor_average,
            "costPerLink": cost_per_link(job),
            "linkGapsTotal": as_int(job.link_gaps_total),
            "linkGapsHighPriority": as_int(job.link_gaps_high_priority),
        },
        "redFlags": red_flags,
        "redFlagCount": len(red_flags),
        "criticalFlags": len(critical_flags(red_flags)),
    })

    lead_scoring = dict(lead)
    lead_scoring["salesNotes"] = generate_sales_notes(
        score, monthly_spend, months, current, competitor_average, red_flags,
    )

    return {
        "timestamp": datetime.utcnow().isoformat(),
        "source": "LinkScore",
        "version": __version__,
        "analysis": {
            "id": job.id,
            "completedAt": iso(job.completed_at),
            "processingTime": as_number(job.processing_time),
            "status": job.status.value,
        },
        "user": {
            "email": job.email,
            "domain": job.domain,
            "company": job.company_name,
            "location": location.key,
            "locationName": location.name,
            "marketValue": location.market_value,
        },
        "campaign": {
            "monthlySpend": monthly_spend,
            "investmentMonths": months,
            "totalInvested": total_investment(job),
            "keywords": as_list(job.keywords),
        },
        "results": results,
        "intelligence": {
            "competitors": competitors,
            "competitorCount": len(competitors),
            "marketPosition": _market_position(current, competitor_average),
            "linkGapOpportunities": as_list(job.link_gaps)[:10],
        },
        "leadScoring": lead_scoring,
        "strategy": get_strategy(score).to_dict(),
        "metadata": {
            "dataforseoCost": as_number(job.dataforseo_cost),
            "processingTime": as_number(job.processing_time),
        },
    }


class WebhookNotifier:
    """
    Delivers analysis payloads to one or more webhook URLs.

    Usage:
        notifier = WebhookNotifier(["https://hooks.example.com/linkscore"])
        report = await notifier.notify(job)
    """

    def __init__(
        self,
        urls: List[str],
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.urls = [u for u in urls if u]
        self.timeout = timeout
        self._transport = transport

        if not self.urls:
            logger.warning("No WEBHOOK_URLS configured - notifications disabled")

    async def _deliver(self, client: httpx.AsyncClient, url: str, payload: Dict[str, Any]) -> DeliveryResult:
        try:
            response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Webhook delivery to {url} failed: {e}")
            return DeliveryResult(url, False, error=str(e) or e.__class__.__name__)

        if response.is_success:
            logger.info(f"Webhook delivered to {url} ({response.status_code})")
            return DeliveryResult(url, True, status_code=response.status_code)

        logger.error(f"Webhook delivery to {url} rejected: HTTP {response.status_code}")
        return DeliveryResult(url, False, status_code=response.status_code, error=f"HTTP {response.status_code}")

    async def send(self, job_id: str, payload: Dict[str, Any]) -> NotificationReport:
        """POST the payload to every endpoint concurrently."""
        report = NotificationReport(job_id)
        if not self.urls:
            return report

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": USER_AGENT, "X-Webhook-Source": WEBHOOK_SOURCE},
            transport=self._transport,
        ) as client:
            report.results = list(await asyncio.gather(
                *(self._deliver(client, url, payload) for url in self.urls)
            ))
        return report

    async def notify(self, job: AnalysisJob) -> NotificationReport:
        """Build the payload for a completed job and deliver it."""
        logger.info(f"[{job.id}] Sending webhook to {len(self.urls)} endpoint(s)")
        return await self.send(job.id, build_payload(job))
