"""
Analysis Orchestrator

Drives one AnalysisJob through its lifecycle:

    pending -> processing -> completed | failed | cancelled

Stages run in order, since each needs the previous one's output:
1. Competitors - SERP-based competitor discovery
2. Client analysis - customer's authority domains, now and at campaign start
3. Competitor analysis - same for each competitor (bounded concurrency)
4. Link gaps - authority domains competitors have and the customer lacks
5. Scoring - LinkScore, red flags, lead scores

Before every stage the job status is re-read. If someone else moved the job
out of processing (user cancel, reaper), the run stops without writing
anything further.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from linkscore.collector.client import DataForSEOClient
from linkscore.collector.competitors import CompetitorResolver
from linkscore.collector.gateway import BacklinkGateway, DomainSnapshot, months_before
from linkscore.collector.locations import get_location
from linkscore.database.models import AnalysisJob, JobStatus
from linkscore.database.repository import CancelOutcome, JobRepository
from linkscore.errors import APIError, StateConflictError
from linkscore.intake.validation import CampaignParameters
from linkscore.scoring.leads import calculate_lead_score, detect_red_flags
from linkscore.scoring.link_gaps import LinkGapReport, compute_gaps
from linkscore.scoring.link_score import (
    CompetitorHistory,
    LinkScoreBreakdown,
    ScoringInput,
    calculate_link_score,
)
from linkscore.scoring.interpretation import classify_strategy
from linkscore.utils.config import Settings, get_settings

from .progress import ProgressReporter, ProgressSnapshot, ProgressStep, competitor_percentage

logger = logging.getLogger(__name__)

COMPLETED_MESSAGE = "Analysis complete! Redirecting to results..."
CANCELLED_MESSAGE = "Analysis was cancelled"
PENDING_MESSAGE = "Analysis queued"
TOP_LINK_GAPS = 10


class RunInterrupted(Exception):
    """The job left processing while the run was between stages."""

    def __init__(self, status: Optional[JobStatus]):
        super().__init__(f"Job is {status.value if status else 'missing'}")
        self.status = status


@dataclass
class ClientAnalysis:
    snapshot: DomainSnapshot
    campaign_start: datetime


def default_client_factory(settings: Settings) -> Callable[[], DataForSEOClient]:
    """Builds a fresh DataForSEO client per run from configured credentials."""
    def factory() -> DataForSEOClient:
        if not settings.has_dataforseo_credentials:
            raise APIError("DataForSEO credentials are not configured")
        return DataForSEOClient(
            login=settings.DATAFORSEO_LOGIN,
            password=settings.DATAFORSEO_PASSWORD,
            timeout=float(settings.API_TIMEOUT),
        )
    return factory


class AnalysisOrchestrator:
    """
    Stateless service over an injected job repository.

    Usage:
        orchestrator = AnalysisOrchestrator(repo, client_factory, notifier)
        job = orchestrator.submit(params)
        await orchestrator.run(job.id)
    """

    def __init__(
        self,
        repo: JobRepository,
        client_factory: Callable[[], Any],
        notifier=None,
        blocklist=None,
        settings: Optional[Settings] = None,
    ):
        self.repo = repo
        self.client_factory = client_factory
        self.notifier = notifier
        self.blocklist = blocklist
        self.settings = settings or get_settings()

    # =========================================================================
    # PUBLIC INTERFACE
    # =========================================================================

    def submit(self, params: CampaignParameters) -> AnalysisJob:
        """Create the pending job. Stages run later via run()."""
        return self.repo.create(
            domain=params.domain,
            location=params.location,
            location_code=params.location_code,
            monthly_spend=params.monthly_spend,
            investment_months=params.investment_months,
            keywords=params.keywords,
            email=params.email,
            company_name=params.company_name,
        )

    def cancel(self, job_id: str) -> CancelOutcome:
        """User cancellation; takes effect at the next stage boundary."""
        return self.repo.cancel(job_id)

    def status(self, job_id: str) -> Dict[str, Any]:
        """Polling view of a job."""
        job = self.repo.require(job_id)
        return describe_status(job)

    def results(self, job_id: str) -> AnalysisJob:
        """
        Completed job row for results formatting.

        Raises:
            NotFoundError: Unknown job
            StateConflictError: Job is not completed yet
        """
        job = self.repo.require(job_id)
        if job.status != JobStatus.COMPLETED:
            raise StateConflictError(f"Analysis is {job.status.value}, results not ready")
        return job

    async def replay_notification(self, job_id: str):
        """
        Re-send the webhook for a completed job.

        Raises:
            NotFoundError: Unknown job
            StateConflictError: Job is not completed
        """
        job = self.results(job_id)
        return await self._notify(job)

    async def run(self, job_id: str) -> Optional[JobStatus]:
        """
        Execute every stage for a pending job.

        Never raises for stage failures; they are recorded on the job.

        Returns:
            The job's status when the run ended
        """
        job = self.repo.get(job_id)
        if job is None:
            logger.error(f"[{job_id}] Job not found, nothing to run")
            return None

        reporter = ProgressReporter(self.repo, job_id)
        location = get_location(job.location)
        if not reporter.start(
            f"Starting LinkScore analysis for {job.domain}...",
            domain=job.domain,
            keywords=list(job.keywords),
            location=location.name,
        ):
            current = self.repo.get_status(job_id)
            logger.warning(f"[{job_id}] Not starting: job is {current.value if current else 'missing'}")
            return current

        logger.info(f"[{job_id}] Starting analysis for {job.domain} in {location.name}")
        started = time.monotonic()
        client = None

        try:
            client = self.client_factory()
            async with client:
                completed = await self._execute(job, reporter, client, started)
        except RunInterrupted as e:
            logger.info(f"[{job_id}] Stopped at stage boundary: {e}")
            self._record_cost(job_id, client)
            return e.status
        except Exception as e:
            elapsed = round(time.monotonic() - started, 2)
            logger.exception(f"[{job_id}] Analysis failed after {elapsed}s: {e}")
            self._record_cost(job_id, client)
            self.repo.fail(job_id, f"Analysis failed: {e}", processing_time=elapsed)
            return self.repo.get_status(job_id)

        if not completed:
            return self.repo.get_status(job_id)

        logger.info(f"[{job_id}] Analysis complete in {time.monotonic() - started:.1f}s")
        await self._notify(self.repo.get(job_id))
        return JobStatus.COMPLETED

    # =========================================================================
    # STAGES
    # =========================================================================

    def _checkpoint(self, job_id: str) -> None:
        status = self.repo.get_status(job_id)
        if status != JobStatus.PROCESSING:
            raise RunInterrupted(status)

    def _record_cost(self, job_id: str, client) -> None:
        if client is not None and getattr(client, "total_cost", None):
            self.repo.save_metrics(job_id, dataforseo_cost=round(client.total_cost, 4))

    async def _execute(self, job: AnalysisJob, reporter: ProgressReporter, client, started: float) -> bool:
        gateway = BacklinkGateway(client, limit=self.settings.BACKLINK_LIMIT)

        self._checkpoint(job.id)
        competitors = await self._resolve_competitors(job, reporter, client)

        self._checkpoint(job.id)
        customer = await self._analyze_client(job, reporter, gateway)

        self._checkpoint(job.id)
        histories, competitor_sets = await self._analyze_competitors(
            job, reporter, gateway, competitors, customer.campaign_start,
        )

        self._checkpoint(job.id)
        gaps = self._find_link_gaps(job, reporter, customer.snapshot, competitor_sets)

        self._checkpoint(job.id)
        return self._score(job, reporter, customer.snapshot, histories, gaps, client, started)

    async def _resolve_competitors(self, job: AnalysisJob, reporter: ProgressReporter, client) -> List[str]:
        location = get_location(job.location)
        reporter.report(
            ProgressStep.COMPETITORS,
            f"Finding your top competitors in {location.name}...",
            keywords=list(job.keywords),
            location=location.name,
            current_activity="Analyzing search results for your keywords",
        )

        is_blocked = None
        if self.blocklist is not None:
            await self.blocklist.get_domains()
            is_blocked = self.blocklist.contains

        resolver = CompetitorResolver(
            client,
            max_competitors=self.settings.MAX_COMPETITORS,
            serp_depth=self.settings.SERP_DEPTH,
            is_blocked=is_blocked,
            domain_suffix=self.settings.COMPETITOR_DOMAIN_SUFFIX,
        )
        competitors = await resolver.resolve_competitors(list(job.keywords), job.location_code, job.domain)

        self.repo.save_metrics(job.id, competitors=competitors)
        reporter.report(
            ProgressStep.COMPETITORS_FOUND,
            f"Found {len(competitors)} competitors ranking for your keywords",
            competitors=competitors,
            location=location.name,
        )
        logger.info(f"[{job.id}] Competitors: {competitors}")
        return competitors

    async def _analyze_client(self, job: AnalysisJob, reporter: ProgressReporter, gateway: BacklinkGateway) -> ClientAnalysis:
        reporter.report(
            ProgressStep.CLIENT_ANALYSIS,
            f"Analyzing authority backlinks for {job.domain}...",
            domain=job.domain,
            current_activity="Retrieving referring domains",
        )

        campaign_start = months_before(datetime.utcnow(), job.investment_months)
        snapshot = await gateway.fetch_snapshot(job.domain, campaign_start)

        self.repo.save_metrics(
            job.id,
            current_authority_links=snapshot.links_now,
            authority_links_gained=snapshot.links_gained,
        )
        reporter.report(
            ProgressStep.CLIENT_ANALYSIS_COMPLETE,
            f"Found {snapshot.links_now} authority links for {job.domain}",
            domain=job.domain,
            metrics={"currentAuthorityLinks": snapshot.links_now, "authorityLinksGained": snapshot.links_gained},
        )
        return ClientAnalysis(snapshot, campaign_start)

    async def _analyze_competitors(
        self,
        job: AnalysisJob,
        reporter: ProgressReporter,
        gateway: BacklinkGateway,
        competitors: List[str],
        campaign_start: datetime,
    ):
        reporter.report(
            ProgressStep.COMPETITOR_ANALYSIS,
            f"Analyzing {len(competitors)} competitor backlink profiles...",
            competitors=competitors,
        )

        semaphore = asyncio.Semaphore(max(1, self.settings.COMPETITOR_CONCURRENCY))
        done = 0

        async def fetch(domain: str) -> DomainSnapshot:
            nonlocal done
            async with semaphore:
                snapshot = await gateway.fetch_snapshot(domain, campaign_start)
            done += 1
            reporter.report(
                ProgressStep.COMPETITOR_ANALYSIS,
                f"Analyzed {domain} ({done}/{len(competitors)})",
                percentage=competitor_percentage(done, len(competitors)),
                competitors=competitors,
                current_activity=f"{domain}: {snapshot.links_now} authority links",
            )
            return snapshot

        tasks = [asyncio.ensure_future(fetch(domain)) for domain in competitors]
        try:
            snapshots = await asyncio.gather(*tasks)
        except BaseException:
            # One failed fetch fails the job; stop the rest before the client closes
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        # Strongest competitors first
        snapshots = sorted(snapshots, key=lambda s: (-s.links_now, s.domain))

        histories = [CompetitorHistory(s.domain, s.links_at_start, s.links_now) for s in snapshots]
        competitor_sets = {s.domain: s.authority_domains for s in snapshots}
        average = sum(h.links_now for h in histories) / len(histories) if histories else 0.0

        self.repo.save_metrics(
            job.id,
            competitors=[h.domain for h in histories],
            historical_data=[h.to_dict() for h in histories],
            competitor_average_links=round(average, 1),
        )
        reporter.report(
            ProgressStep.COMPETITORS_RANKED,
            "Ranked competitors by authority link count",
            competitors=[h.domain for h in histories],
            metrics={"competitorAverage": round(average, 1)},
        )
        return histories, competitor_sets

    def _find_link_gaps(self, job: AnalysisJob, reporter: ProgressReporter, customer: DomainSnapshot, competitor_sets) -> LinkGapReport:
        reporter.report(
            ProgressStep.LINK_GAPS,
            "Identifying link gap opportunities...",
            current_activity="Comparing referring domains",
        )

        report = compute_gaps(customer.authority_domains, competitor_sets, customer_domain=job.domain)

        self.repo.save_metrics(
            job.id,
            link_gaps=[g.to_dict() for g in report.top(TOP_LINK_GAPS)],
            link_gaps_total=report.total,
            link_gaps_high_priority=report.high_priority,
        )
        reporter.report(
            ProgressStep.LINK_GAPS_FOUND,
            f"Found {report.total} link opportunities ({report.high_priority} high priority)",
            metrics={"linkGapsTotal": report.total, "linkGapsHighPriority": report.high_priority},
        )
        return report

    def _score(
        self,
        job: AnalysisJob,
        reporter: ProgressReporter,
        customer: DomainSnapshot,
        histories: List[CompetitorHistory],
        gaps: LinkGapReport,
        client,
        started: float,
    ) -> bool:
        reporter.report(ProgressStep.SCORING, "Calculating your LinkScore...")

        breakdown: LinkScoreBreakdown = calculate_link_score(ScoringInput(
            monthly_spend=job.monthly_spend,
            investment_months=job.investment_months,
            current_links=customer.links_now,
            links_gained=customer.links_gained,
            competitors=histories,
        ))
        red_flags = detect_red_flags(
            monthly_spend=job.monthly_spend,
            investment_months=job.investment_months,
            links_gained=customer.links_gained,
            expected_links=breakdown.expected_links,
            performance_pct=breakdown.performance_pct,
            current_links=customer.links_now,
            competitor_average=breakdown.competitor_average,
            cost_per_link=breakdown.cost_per_link,
            link_gaps_total=gaps.total,
        )
        lead = calculate_lead_score(
            link_score=breakdown.overall,
            monthly_spend=job.monthly_spend,
            investment_months=job.investment_months,
            current_links=customer.links_now,
            competitor_average=breakdown.competitor_average,
            red_flags=red_flags,
            location=job.location,
        )

        reporter.report(
            ProgressStep.SCORING_COMPLETE,
            f"LinkScore calculated: {breakdown.overall}/100",
            metrics={"linkScore": breakdown.overall, "redFlags": len(red_flags)},
        )

        final = ProgressSnapshot(step=ProgressStep.COMPLETED, message=COMPLETED_MESSAGE, percentage=100)
        completed = self.repo.complete(
            job.id,
            final.to_record(),
            link_score=breakdown.overall,
            competitive_score=breakdown.competitive,
            performance_score=breakdown.performance,
            velocity_score=breakdown.velocity,
            market_share_score=breakdown.market_share,
            cost_efficiency_score=breakdown.cost_efficiency,
            strategy=classify_strategy(breakdown.overall).value,
            expected_links=breakdown.expected_links,
            competitor_average_links=breakdown.competitor_average,
            cost_per_authority_link=breakdown.cost_per_link,
            total_investment=job.monthly_spend * job.investment_months,
            red_flags=[f.to_dict() for f in red_flags],
            priority_score=lead.priority,
            potential_score=lead.potential,
            dataforseo_cost=round(getattr(client, "total_cost", 0.0) or 0.0, 4),
            processing_time=round(time.monotonic() - started, 2),
        )
        if not completed:
            logger.info(f"[{job.id}] Job left processing during scoring, results discarded")
        return completed

    # =========================================================================
    # NOTIFICATION
    # =========================================================================

    async def _notify(self, job: AnalysisJob):
        if self.notifier is None or job is None:
            return None
        try:
            report = await self.notifier.notify(job)
        except Exception as e:
            # Delivery never un-completes a job
            logger.error(f"[{job.id}] Webhook notification failed: {e}")
            return None
        if report.delivered:
            self.repo.mark_notified(job.id)
        return report


def describe_status(job: AnalysisJob) -> Dict[str, Any]:
    """Status poll payload: progress while processing, fixed messages once terminal."""
    base = {"id": job.id, "status": job.status.value, "domain": job.domain}

    if job.status == JobStatus.COMPLETED:
        base.update(progress=100, step="completed", message=COMPLETED_MESSAGE)
    elif job.status == JobStatus.CANCELLED:
        base.update(progress=job.progress_percent or 0, step="cancelled", message=CANCELLED_MESSAGE)
    elif job.status == JobStatus.FAILED:
        message = job.error_message or "Analysis failed"
        base.update(progress=job.progress_percent or 0, step="failed", message=message, error=message)
    elif job.status == JobStatus.PENDING:
        base.update(progress=0, step="pending", message=PENDING_MESSAGE)
    else:
        snapshot = ProgressSnapshot.from_record(job.progress)
        if snapshot is None:
            base.update(progress=0, step=ProgressStep.INITIALIZATION.value, message="Starting analysis...")
        else:
            base.update(
                progress=snapshot.percentage,
                step=snapshot.step.value,
                message=snapshot.message,
                timestamp=snapshot.timestamp.isoformat(),
            )
            if snapshot.data is not None:
                base["data"] = snapshot.data.model_dump(exclude_none=True)
    return base
