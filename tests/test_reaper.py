"""
Test Suite for the Stuck-Job Reaper

Tests recovery of abandoned analyses and the scheduler wiring.
"""

import asyncio
import time

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from linkscore.analyzer import ReaperScheduler, StuckJobReaper
from linkscore.analyzer.reaper import EMERGENCY_RESET_MESSAGE, timeout_message
from linkscore.database import JobStatus


def start(repo, job, pct=30, step="client_analysis_complete"):
    repo.mark_processing(job.id, {"step": "initialization", "message": "Starting", "percentage": 5})
    repo.save_progress(job.id, {
        "step": step,
        "message": "Found authority links",
        "percentage": pct,
        "timestamp": datetime.utcnow().isoformat(),
    })


class TestStuckJobReaper:

    def test_list_stuck_jobs(self, repo, make_job):
        job = make_job()
        start(repo, job)
        reaper = StuckJobReaper(repo)

        stuck = reaper.list_stuck_jobs(15, now=datetime.utcnow() + timedelta(minutes=30))
        assert len(stuck) == 1
        assert stuck[0]["id"] == job.id
        assert stuck[0]["lastStep"] == "client_analysis_complete"
        assert stuck[0]["lastPercentage"] == 30
        assert stuck[0]["ageMinutes"] >= 29

    def test_cleanup_fails_only_stale_processing_jobs(self, repo, make_job):
        stale = make_job()
        start(repo, stale)
        pending = make_job()
        later = datetime.utcnow() + timedelta(minutes=20)

        result = StuckJobReaper(repo).cleanup(15, now=later)

        assert result["cleaned"] == 1
        assert result["jobIds"] == [stale.id]
        stored = repo.get(stale.id)
        assert stored.status == JobStatus.FAILED
        assert stored.error_message == timeout_message(15)
        assert stored.error_message == "Analysis timeout - exceeded 15 minute limit"
        assert repo.get_status(pending.id) == JobStatus.PENDING

    def test_recent_heartbeat_protects_job(self, repo, make_job):
        job = make_job()
        start(repo, job)
        assert StuckJobReaper(repo).cleanup(15)["cleaned"] == 0
        assert repo.get_status(job.id) == JobStatus.PROCESSING

    def test_completed_jobs_untouched(self, repo, make_job):
        job = make_job()
        start(repo, job)
        repo.complete(
            job.id,
            {"step": "completed", "message": "done", "percentage": 100},
            link_score=50, competitive_score=15, performance_score=12,
            velocity_score=10, market_share_score=8, cost_efficiency_score=5,
        )
        result = StuckJobReaper(repo).cleanup(15, now=datetime.utcnow() + timedelta(hours=1))
        assert result["cleaned"] == 0
        assert repo.get_status(job.id) == JobStatus.COMPLETED

    def test_kill_queries_unsupported_without_postgres(self, repo, engine):
        result = StuckJobReaper(repo, engine).kill_long_running_queries(10)
        assert result["killed"] == 0
        assert StuckJobReaper(repo).kill_long_running_queries(10)["killed"] == 0

    def test_force_cleanup(self, repo, engine):
        result = StuckJobReaper(repo, engine).force_cleanup()
        assert result["jobs"]["cleaned"] == 0
        assert result["queries"]["killed"] == 0

    def test_emergency_reset(self, repo, make_job):
        running = make_job()
        start(repo, running)
        waiting = make_job()

        result = StuckJobReaper(repo).emergency_reset()

        assert result["cancelled"] == 1
        stored = repo.get(running.id)
        assert stored.status == JobStatus.CANCELLED
        assert stored.error_message == EMERGENCY_RESET_MESSAGE
        assert repo.get_status(waiting.id) == JobStatus.PENDING


class TestReaperScheduler:

    @pytest.mark.asyncio
    async def test_runs_sweeps_periodically(self):
        reaper = MagicMock()
        scheduler = ReaperScheduler(reaper, cleanup_interval=0.01, kill_interval=0.01, stuck_minutes=15, query_minutes=10)

        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert reaper.cleanup.call_count >= 1
        reaper.cleanup.assert_called_with(15)
        reaper.kill_long_running_queries.assert_called_with(10)

    @pytest.mark.asyncio
    async def test_sweep_errors_do_not_stop_timer(self):
        reaper = MagicMock()
        reaper.cleanup.side_effect = RuntimeError("db down")
        scheduler = ReaperScheduler(reaper, cleanup_interval=0.01, kill_interval=10)

        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert reaper.cleanup.call_count >= 2

    @pytest.mark.asyncio
    async def test_slow_sweep_does_not_block_event_loop(self):
        reaper = MagicMock()
        reaper.cleanup.side_effect = lambda minutes: time.sleep(0.3)
        scheduler = ReaperScheduler(reaper, cleanup_interval=0.01, kill_interval=10)

        scheduler.start()
        started = time.monotonic()
        await asyncio.sleep(0.05)
        elapsed = time.monotonic() - started
        await scheduler.stop()

        assert reaper.cleanup.called
        assert elapsed < 0.25
