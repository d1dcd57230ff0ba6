"""
Test Suite for the Job Repository

Tests the job state machine against an in-memory SQLite database:
- Guarded transitions (no writes out of terminal states)
- Cancellation idempotence
- Progress monotonicity
- Staleness queries used by the reaper
"""

import pytest
from datetime import datetime, timedelta

from linkscore.database import CANCELLED_BY_USER, JobStatus
from linkscore.errors import NotFoundError, StateConflictError

SCORES = dict(
    link_score=58,
    competitive_score=27,
    performance_score=2,
    velocity_score=17,
    market_share_score=11,
    cost_efficiency_score=1,
)


def progress(pct, step="competitors"):
    return {"step": step, "message": "working", "percentage": pct}


class TestCreate:

    def test_create_pending(self, repo, make_job):
        job = make_job()
        assert job.id
        assert job.status == JobStatus.PENDING
        assert job.total_investment == 36000
        assert job.keywords == ["plumber sydney", "emergency plumber"]

        stored = repo.require(job.id)
        assert stored.domain == "acme.com.au"
        assert stored.created_at is not None

    def test_require_unknown(self, repo):
        with pytest.raises(NotFoundError):
            repo.require("missing")
        assert repo.get_status("missing") is None


class TestTransitions:
    """Every transition is a conditional UPDATE on the current status."""

    def test_mark_processing_once(self, repo, make_job):
        job = make_job()
        assert repo.mark_processing(job.id, progress(5, "initialization"))
        assert not repo.mark_processing(job.id, progress(5, "initialization"))

        stored = repo.get(job.id)
        assert stored.status == JobStatus.PROCESSING
        assert stored.started_at is not None

    def test_progress_requires_processing(self, repo, make_job):
        job = make_job()
        assert not repo.save_progress(job.id, progress(10))

    def test_progress_never_goes_backwards(self, repo, make_job):
        job = make_job()
        repo.mark_processing(job.id, progress(5))
        assert repo.save_progress(job.id, progress(50))
        assert not repo.save_progress(job.id, progress(40))
        assert repo.get(job.id).progress_percent == 50

    def test_save_metrics_rejects_unknown_columns(self, repo, make_job):
        job = make_job()
        repo.mark_processing(job.id, progress(5))
        with pytest.raises(ValueError):
            repo.save_metrics(job.id, status="completed")

    def test_complete_requires_all_scores(self, repo, make_job):
        job = make_job()
        repo.mark_processing(job.id, progress(5))
        partial = dict(SCORES)
        partial.pop("velocity_score")
        with pytest.raises(ValueError):
            repo.complete(job.id, progress(100, "completed"), **partial)

    def test_complete(self, repo, make_job):
        job = make_job()
        repo.mark_processing(job.id, progress(5))
        assert repo.complete(job.id, progress(100, "completed"), processing_time=12.5, **SCORES)

        stored = repo.get(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.progress_percent == 100
        assert stored.link_score == 58
        assert stored.completed_at is not None

    def test_terminal_jobs_are_frozen(self, repo, make_job):
        job = make_job()
        repo.mark_processing(job.id, progress(5))
        repo.complete(job.id, progress(100, "completed"), **SCORES)

        assert not repo.save_progress(job.id, progress(100))
        assert not repo.save_metrics(job.id, link_gaps_total=3)
        assert not repo.fail(job.id, "late failure")
        assert repo.get(job.id).status == JobStatus.COMPLETED

    def test_fail_from_pending(self, repo, make_job):
        job = make_job()
        assert repo.fail(job.id, "Analysis failed: boom", processing_time=1.0)
        stored = repo.get(job.id)
        assert stored.status == JobStatus.FAILED
        assert stored.error_message == "Analysis failed: boom"


class TestCancel:

    def test_cancel_pending(self, repo, make_job):
        job = make_job()
        outcome = repo.cancel(job.id)
        assert not outcome.already_cancelled
        assert outcome.message == "Analysis cancelled successfully"
        stored = repo.get(job.id)
        assert stored.status == JobStatus.CANCELLED
        assert stored.error_message == CANCELLED_BY_USER

    def test_cancel_is_idempotent(self, repo, make_job):
        job = make_job()
        repo.mark_processing(job.id, progress(5))
        repo.cancel(job.id)
        outcome = repo.cancel(job.id)
        assert outcome.already_cancelled
        assert outcome.message == "Analysis already cancelled"

    def test_cannot_cancel_completed(self, repo, make_job):
        job = make_job()
        repo.mark_processing(job.id, progress(5))
        repo.complete(job.id, progress(100, "completed"), **SCORES)
        with pytest.raises(StateConflictError, match="Cannot cancel completed analysis"):
            repo.cancel(job.id)

    def test_cannot_cancel_failed(self, repo, make_job):
        job = make_job()
        repo.fail(job.id, "boom")
        with pytest.raises(StateConflictError):
            repo.cancel(job.id)

    def test_cancel_unknown(self, repo):
        with pytest.raises(NotFoundError):
            repo.cancel("missing")

    def test_force_cancel_any_state(self, repo, make_job):
        job = make_job()
        repo.fail(job.id, "boom")
        assert repo.force_cancel(job.id, "operator")
        assert not repo.force_cancel(job.id, "operator")
        assert repo.get(job.id).status == JobStatus.CANCELLED
        with pytest.raises(NotFoundError):
            repo.force_cancel("missing", "operator")

    def test_cancel_all_processing(self, repo, make_job):
        running = [make_job(), make_job()]
        for job in running:
            repo.mark_processing(job.id, progress(5))
        waiting = make_job()

        assert repo.cancel_all_processing("reset") == 2
        assert repo.get_status(waiting.id) == JobStatus.PENDING
        assert repo.count_by_status() == {"cancelled": 2, "pending": 1}


class TestStaleness:
    """Last activity is the newest of updated_at, started_at and created_at."""

    def test_list_stuck(self, repo, make_job):
        job = make_job()
        repo.mark_processing(job.id, progress(5))
        later = datetime.utcnow() + timedelta(minutes=20)

        assert [j.id for j in repo.list_stuck(15, now=later)] == [job.id]
        assert repo.list_stuck(15) == []

    def test_pending_jobs_are_never_stuck(self, repo, make_job):
        make_job()
        assert repo.list_stuck(15, now=datetime.utcnow() + timedelta(hours=2)) == []

    def test_fail_stuck(self, repo, make_job):
        stale = make_job()
        repo.mark_processing(stale.id, progress(5))
        later = datetime.utcnow() + timedelta(minutes=20)

        assert repo.fail_stuck(15, "timed out", now=later) == [stale.id]
        stored = repo.get(stale.id)
        assert stored.status == JobStatus.FAILED
        assert stored.error_message == "timed out"

    def test_mark_notified_only_completed(self, repo, make_job):
        job = make_job()
        assert not repo.mark_notified(job.id)
        repo.mark_processing(job.id, progress(5))
        repo.complete(job.id, progress(100, "completed"), **SCORES)
        assert repo.mark_notified(job.id)
        assert repo.get(job.id).notification_sent_at is not None
