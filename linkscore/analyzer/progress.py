"""
Progress reporting for running analyses.

A job carries exactly one progress snapshot, overwritten at every stage
transition. Snapshots are pydantic models so the status endpoint reads back
a typed value instead of re-parsing a string.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ProgressStep(str, Enum):
    INITIALIZATION = "initialization"
    COMPETITORS = "competitors"
    COMPETITORS_FOUND = "competitors_found"
    CLIENT_ANALYSIS = "client_analysis"
    CLIENT_ANALYSIS_COMPLETE = "client_analysis_complete"
    COMPETITOR_ANALYSIS = "competitor_analysis"
    COMPETITORS_RANKED = "competitors_ranked"
    LINK_GAPS = "link_gaps"
    LINK_GAPS_FOUND = "link_gaps_found"
    SCORING = "scoring"
    SCORING_COMPLETE = "scoring_complete"
    COMPLETED = "completed"


STEP_PERCENTAGES: Dict[ProgressStep, int] = {
    ProgressStep.INITIALIZATION: 5,
    ProgressStep.COMPETITORS: 10,
    ProgressStep.COMPETITORS_FOUND: 15,
    ProgressStep.CLIENT_ANALYSIS: 25,
    ProgressStep.CLIENT_ANALYSIS_COMPLETE: 30,
    ProgressStep.COMPETITOR_ANALYSIS: 35,
    ProgressStep.COMPETITORS_RANKED: 65,
    ProgressStep.LINK_GAPS: 75,
    ProgressStep.LINK_GAPS_FOUND: 80,
    ProgressStep.SCORING: 90,
    ProgressStep.SCORING_COMPLETE: 95,
    ProgressStep.COMPLETED: 100,
}

# Per-competitor fetches spread across 35-60%
COMPETITOR_ANALYSIS_SPAN = (35, 60)


class ProgressData(BaseModel):
    """Structured detail shown alongside the progress bar."""
    keywords: Optional[List[str]] = None
    location: Optional[str] = None
    competitors: Optional[List[str]] = None
    domain: Optional[str] = None
    current_activity: Optional[str] = None
    metrics: Optional[Dict[str, Any]] = None


class ProgressSnapshot(BaseModel):
    step: ProgressStep
    message: str
    percentage: int = Field(ge=0, le=100)
    data: Optional[ProgressData] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    def to_record(self) -> Dict[str, Any]:
        """JSON-safe dict for the progress column."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_record(cls, record: Optional[Dict[str, Any]]) -> Optional["ProgressSnapshot"]:
        if not record:
            return None
        return cls.model_validate(record)


def competitor_percentage(done: int, total: int) -> int:
    start, end = COMPETITOR_ANALYSIS_SPAN
    if total <= 0:
        return end
    return start + int((end - start) * done / total)


class ProgressReporter:
    """
    Writes snapshots for one job and keeps the percentage non-decreasing.

    Usage:
        reporter = ProgressReporter(repo, job_id)
        reporter.report(ProgressStep.COMPETITORS, "Finding competitors...")
    """

    def __init__(self, repo, job_id: str):
        self.repo = repo
        self.job_id = job_id
        self.last_percentage = 0

    def snapshot(
        self,
        step: ProgressStep,
        message: str,
        percentage: Optional[int] = None,
        **data,
    ) -> ProgressSnapshot:
        pct = STEP_PERCENTAGES[step] if percentage is None else percentage
        pct = max(self.last_percentage, min(100, pct))
        self.last_percentage = pct
        return ProgressSnapshot(
            step=step,
            message=message,
            percentage=pct,
            data=ProgressData(**data) if data else None,
        )

    def start(self, message: str, **data) -> bool:
        """First snapshot; moves the job pending -> processing."""
        snap = self.snapshot(ProgressStep.INITIALIZATION, message, **data)
        return self.repo.mark_processing(self.job_id, snap.to_record())

    def report(
        self,
        step: ProgressStep,
        message: str,
        percentage: Optional[int] = None,
        **data,
    ) -> bool:
        snap = self.snapshot(step, message, percentage, **data)
        written = self.repo.save_progress(self.job_id, snap.to_record())
        if not written:
            logger.debug(f"[{self.job_id}] Progress {step.value} not written (job no longer processing)")
        return written
