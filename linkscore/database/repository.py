"""
Repository Layer - Clean Interface for Job Operations

Every mutation is a single conditional UPDATE that names the statuses it is
allowed to start from. A write that loses a race (job already cancelled,
reaped or completed) matches zero rows and reports False instead of
overwriting a terminal record.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import sessionmaker

from linkscore.errors import NotFoundError, StateConflictError

from .models import ACTIVE_STATUSES, AnalysisJob, JobStatus
from .session import session_scope

logger = logging.getLogger(__name__)

CANCELLED_BY_USER = "Analysis cancelled by user"

# Columns the orchestrator may fill while a job is processing
METRIC_COLUMNS = frozenset({
    "current_authority_links", "authority_links_gained", "expected_links",
    "competitor_average_links", "competitors", "historical_data",
    "link_gaps", "link_gaps_total", "link_gaps_high_priority", "red_flags",
    "link_score", "competitive_score", "performance_score", "velocity_score",
    "market_share_score", "cost_efficiency_score", "strategy",
    "priority_score", "potential_score",
    "total_investment", "cost_per_authority_link", "dataforseo_cost",
})

SCORE_COLUMNS = (
    "competitive_score", "performance_score", "velocity_score",
    "market_share_score", "cost_efficiency_score",
)


@dataclass
class CancelOutcome:
    job_id: str
    already_cancelled: bool

    @property
    def message(self) -> str:
        return "Analysis already cancelled" if self.already_cancelled else "Analysis cancelled successfully"


class JobRepository:
    """
    AnalysisJob persistence.

    Usage:
        repo = JobRepository(get_session_factory())
        job = repo.create(domain="acme.com.au", ...)
        repo.mark_processing(job.id, snapshot)
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, job_id: str) -> Optional[AnalysisJob]:
        with session_scope(self.session_factory) as db:
            return db.get(AnalysisJob, job_id)

    def require(self, job_id: str) -> AnalysisJob:
        job = self.get(job_id)
        if job is None:
            raise NotFoundError(f"Analysis {job_id} not found")
        return job

    def get_status(self, job_id: str) -> Optional[JobStatus]:
        with session_scope(self.session_factory) as db:
            row = db.query(AnalysisJob.status).filter(AnalysisJob.id == job_id).first()
            return row[0] if row else None

    def list_by_status(self, status: JobStatus, limit: int = 100) -> List[AnalysisJob]:
        with session_scope(self.session_factory) as db:
            return (
                db.query(AnalysisJob)
                .filter(AnalysisJob.status == status)
                .order_by(AnalysisJob.created_at.asc())
                .limit(limit)
                .all()
            )

    def count_by_status(self) -> Dict[str, int]:
        with session_scope(self.session_factory) as db:
            rows = db.query(AnalysisJob.status, func.count(AnalysisJob.id)).group_by(AnalysisJob.status).all()
            return {status.value: count for status, count in rows}

    @staticmethod
    def _stale_filter(cutoff: datetime):
        last_activity = func.coalesce(AnalysisJob.updated_at, AnalysisJob.started_at, AnalysisJob.created_at)
        return (AnalysisJob.status == JobStatus.PROCESSING) & (last_activity < cutoff)

    def list_stuck(self, older_than_minutes: int, now: Optional[datetime] = None) -> List[AnalysisJob]:
        """Processing jobs with no activity for longer than the threshold."""
        cutoff = (now or datetime.utcnow()) - timedelta(minutes=older_than_minutes)
        with session_scope(self.session_factory) as db:
            return (
                db.query(AnalysisJob)
                .filter(self._stale_filter(cutoff))
                .order_by(AnalysisJob.created_at.asc())
                .all()
            )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(
        self,
        domain: str,
        location: str,
        location_code: int,
        monthly_spend: float,
        investment_months: int,
        keywords: List[str],
        email: Optional[str] = None,
        company_name: Optional[str] = None,
    ) -> AnalysisJob:
        """Insert a pending job with its immutable campaign parameters."""
        job = AnalysisJob(
            status=JobStatus.PENDING,
            domain=domain,
            email=email,
            company_name=company_name,
            location=location,
            location_code=location_code,
            monthly_spend=monthly_spend,
            investment_months=investment_months,
            keywords=list(keywords),
            total_investment=monthly_spend * investment_months,
            progress_percent=0,
        )
        with session_scope(self.session_factory) as db:
            db.add(job)
            db.flush()
            logger.info(f"[{job.id}] Created analysis job for {domain}")
            return job

    def _update(self, job_id: str, allowed: Iterable[JobStatus], values: Dict[str, Any], *extra_filters) -> bool:
        values = dict(values)
        values.setdefault("updated_at", datetime.utcnow())
        with session_scope(self.session_factory) as db:
            count = (
                db.query(AnalysisJob)
                .filter(AnalysisJob.id == job_id, AnalysisJob.status.in_(list(allowed)), *extra_filters)
                .update(values, synchronize_session=False)
            )
        return count == 1

    def mark_processing(self, job_id: str, progress: Dict[str, Any]) -> bool:
        """pending -> processing. False if the job already left pending."""
        now = datetime.utcnow()
        return self._update(
            job_id,
            [JobStatus.PENDING],
            {
                "status": JobStatus.PROCESSING,
                "started_at": now,
                "progress": progress,
                "progress_percent": int(progress.get("percentage", 0)),
            },
        )

    def save_progress(self, job_id: str, progress: Dict[str, Any]) -> bool:
        """Overwrite the snapshot unless the job is no longer processing or the percentage would go down."""
        percentage = int(progress.get("percentage", 0))
        return self._update(
            job_id,
            [JobStatus.PROCESSING],
            {"progress": progress, "progress_percent": percentage},
            or_(AnalysisJob.progress_percent.is_(None), AnalysisJob.progress_percent <= percentage),
        )

    def save_metrics(self, job_id: str, **metrics) -> bool:
        """Write derived metrics while processing."""
        unknown = set(metrics) - METRIC_COLUMNS
        if unknown:
            raise ValueError(f"Not metric columns: {sorted(unknown)}")
        return self._update(job_id, [JobStatus.PROCESSING], metrics)

    def complete(self, job_id: str, progress: Dict[str, Any], **metrics) -> bool:
        """
        processing -> completed, with the final metrics in the same UPDATE.

        Raises:
            ValueError: A score component is missing
        """
        missing = [c for c in SCORE_COLUMNS + ("link_score",) if metrics.get(c) is None]
        if missing:
            raise ValueError(f"Cannot complete without score components: {missing}")
        unknown = set(metrics) - METRIC_COLUMNS - {"processing_time"}
        if unknown:
            raise ValueError(f"Not metric columns: {sorted(unknown)}")

        values = dict(metrics)
        values.update({
            "status": JobStatus.COMPLETED,
            "completed_at": datetime.utcnow(),
            "progress": progress,
            "progress_percent": 100,
        })
        return self._update(job_id, [JobStatus.PROCESSING], values)

    def fail(self, job_id: str, error_message: str, processing_time: Optional[float] = None) -> bool:
        """pending|processing -> failed."""
        values = {
            "status": JobStatus.FAILED,
            "error_message": error_message[:2000],
            "completed_at": datetime.utcnow(),
        }
        if processing_time is not None:
            values["processing_time"] = processing_time
        return self._update(job_id, ACTIVE_STATUSES, values)

    def cancel(self, job_id: str) -> CancelOutcome:
        """
        pending|processing -> cancelled. Idempotent for already-cancelled jobs.

        Raises:
            NotFoundError: Unknown job id
            StateConflictError: Job already completed or failed
        """
        if self._update(
            job_id,
            ACTIVE_STATUSES,
            {
                "status": JobStatus.CANCELLED,
                "error_message": CANCELLED_BY_USER,
                "completed_at": datetime.utcnow(),
            },
        ):
            logger.info(f"[{job_id}] Cancelled by user")
            return CancelOutcome(job_id, already_cancelled=False)

        status = self.get_status(job_id)
        if status is None:
            raise NotFoundError(f"Analysis {job_id} not found")
        if status == JobStatus.CANCELLED:
            return CancelOutcome(job_id, already_cancelled=True)
        raise StateConflictError(f"Cannot cancel {status.value} analysis")

    def force_cancel(self, job_id: str, reason: str) -> bool:
        """Administrative cancel from any non-cancelled state, terminal included."""
        allowed = [s for s in JobStatus if s != JobStatus.CANCELLED]
        if self._update(
            job_id,
            allowed,
            {"status": JobStatus.CANCELLED, "error_message": reason, "completed_at": datetime.utcnow()},
        ):
            logger.warning(f"[{job_id}] Force-cancelled: {reason}")
            return True
        if self.get_status(job_id) is None:
            raise NotFoundError(f"Analysis {job_id} not found")
        return False

    def cancel_all_processing(self, reason: str) -> int:
        """Cancel every processing job. Returns the number cancelled."""
        with session_scope(self.session_factory) as db:
            return (
                db.query(AnalysisJob)
                .filter(AnalysisJob.status == JobStatus.PROCESSING)
                .update(
                    {
                        "status": JobStatus.CANCELLED,
                        "error_message": reason,
                        "completed_at": datetime.utcnow(),
                        "updated_at": datetime.utcnow(),
                    },
                    synchronize_session=False,
                )
            )

    def fail_stuck(self, older_than_minutes: int, message: str, now: Optional[datetime] = None) -> List[str]:
        """
        Fail processing jobs idle past the threshold.

        Each job is updated with the staleness condition repeated, so a job
        that wrote progress between the scan and the update is left alone.

        Returns:
            Ids of the jobs that were failed
        """
        now = now or datetime.utcnow()
        cutoff = now - timedelta(minutes=older_than_minutes)
        failed = []
        for job in self.list_stuck(older_than_minutes, now=now):
            with session_scope(self.session_factory) as db:
                count = (
                    db.query(AnalysisJob)
                    .filter(AnalysisJob.id == job.id, self._stale_filter(cutoff))
                    .update(
                        {
                            "status": JobStatus.FAILED,
                            "error_message": message,
                            "completed_at": now,
                            "updated_at": now,
                        },
                        synchronize_session=False,
                    )
                )
            if count == 1:
                failed.append(job.id)
        return failed

    def mark_notified(self, job_id: str) -> bool:
        """Stamp notification delivery on a completed job."""
        with session_scope(self.session_factory) as db:
            count = (
                db.query(AnalysisJob)
                .filter(AnalysisJob.id == job_id, AnalysisJob.status == JobStatus.COMPLETED)
                .update({"notification_sent_at": datetime.utcnow()}, synchronize_session=False)
            )
        return count == 1
