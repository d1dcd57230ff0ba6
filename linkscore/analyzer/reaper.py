"""
Stuck-Job Reaper

Out-of-band maintenance for analyses that stopped making progress (process
restart, hung provider call). Runs on demand from the admin API and on a
timer started with the app.

It only ever touches jobs it has itself found to be stale, plus the
explicit emergency reset.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from linkscore.analyzer.progress import ProgressSnapshot
from linkscore.database.repository import JobRepository
from linkscore.database.session import is_postgres

logger = logging.getLogger(__name__)

EMERGENCY_RESET_MESSAGE = "Analysis cancelled by emergency reset"


def timeout_message(minutes: int) -> str:
    return f"Analysis timeout - exceeded {minutes} minute limit"


class StuckJobReaper:
    """
    Usage:
        reaper = StuckJobReaper(repo, engine)
        reaper.cleanup(15)
        reaper.kill_long_running_queries(10)
    """

    def __init__(self, repo: JobRepository, engine: Optional[Engine] = None):
        self.repo = repo
        self.engine = engine

    def list_stuck_jobs(self, age_minutes: int = 15, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Processing jobs idle past the threshold, oldest first."""
        now = now or datetime.utcnow()
        stuck = []
        for job in self.repo.list_stuck(age_minutes, now=now):
            snapshot = ProgressSnapshot.from_record(job.progress)
            stuck.append({
                "id": job.id,
                "domain": job.domain,
                "createdAt": job.created_at.isoformat() if job.created_at else None,
                "ageMinutes": round((now - job.created_at).total_seconds() / 60, 1) if job.created_at else None,
                "lastStep": snapshot.step.value if snapshot else None,
                "lastPercentage": snapshot.percentage if snapshot else 0,
            })
        return stuck

    def cleanup(self, age_minutes: int = 15, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Fail every processing job idle for longer than `age_minutes`."""
        job_ids = self.repo.fail_stuck(age_minutes, timeout_message(age_minutes), now=now)
        if job_ids:
            logger.warning(f"Reaped {len(job_ids)} stuck analyses older than {age_minutes} min: {job_ids}")
        else:
            logger.info(f"No stuck analyses older than {age_minutes} min")
        return {
            "cleaned": len(job_ids),
            "jobIds": job_ids,
            "message": f"Cleaned up {len(job_ids)} stuck analyses",
        }

    def kill_long_running_queries(self, age_minutes: int = 10) -> Dict[str, Any]:
        """
        Terminate this database's queries running longer than `age_minutes`.

        PostgreSQL only; other stores report nothing killed.
        """
        if self.engine is None or not is_postgres(self.engine):
            return {"killed": 0, "queries": [], "message": "Query termination not supported for this database"}

        with self.engine.connect() as conn:
            rows = conn.execute(
                text("""
                    SELECT pid, now() - query_start AS duration, left(query, 200) AS query,
                           pg_terminate_backend(pid) AS terminated
                    FROM pg_stat_activity
                    WHERE datname = current_database()
                      AND pid <> pg_backend_pid()
                      AND state = 'active'
                      AND query_start < now() - make_interval(mins => :minutes)
                """),
                {"minutes": age_minutes},
            ).fetchall()
            conn.commit()

        queries = [
            {"pid": row.pid, "duration": str(row.duration), "query": row.query, "terminated": bool(row.terminated)}
            for row in rows
        ]
        killed = sum(1 for q in queries if q["terminated"])
        if killed:
            logger.warning(f"Terminated {killed} queries running longer than {age_minutes} min")
        return {"killed": killed, "queries": queries, "message": f"Terminated {killed} long-running queries"}

    def force_cleanup(self) -> Dict[str, Any]:
        """Aggressive sweep: 5-minute thresholds for both jobs and queries."""
        return {
            "jobs": self.cleanup(5),
            "queries": self.kill_long_running_queries(5),
        }

    def emergency_reset(self) -> Dict[str, Any]:
        """Cancel every processing job, stale or not."""
        cancelled = self.repo.cancel_all_processing(EMERGENCY_RESET_MESSAGE)
        logger.warning(f"Emergency reset cancelled {cancelled} processing analyses")
        return {"cancelled": cancelled, "message": f"Emergency reset: cancelled {cancelled} analyses"}


class ReaperScheduler:
    """
    Periodic cleanup and query-kill sweeps on the running event loop.

    Usage:
        scheduler = ReaperScheduler(reaper)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        reaper: StuckJobReaper,
        cleanup_interval: float = 300,
        kill_interval: float = 600,
        stuck_minutes: int = 15,
        query_minutes: int = 10,
    ):
        self.reaper = reaper
        self.cleanup_interval = cleanup_interval
        self.kill_interval = kill_interval
        self.stuck_minutes = stuck_minutes
        self.query_minutes = query_minutes
        self._tasks: List[asyncio.Task] = []

    async def _every(self, interval: float, name: str, action) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                # Sweeps are blocking database work
                await asyncio.to_thread(action)
            except Exception as e:
                # Keep the timer alive; the next sweep retries
                logger.exception(f"Scheduled {name} failed: {e}")

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._every(
                self.cleanup_interval, "stuck-job cleanup", lambda: self.reaper.cleanup(self.stuck_minutes),
            )),
            asyncio.create_task(self._every(
                self.kill_interval, "long-query kill", lambda: self.reaper.kill_long_running_queries(self.query_minutes),
            )),
        ]
        logger.info(
            f"Reaper scheduled: cleanup every {self.cleanup_interval}s, query kill every {self.kill_interval}s"
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
