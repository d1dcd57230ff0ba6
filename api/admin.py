"""
Admin API Endpoints

Operational maintenance for the analysis pipeline:
- Stuck-job inspection and cleanup
- Long-running query termination (PostgreSQL)
- Emergency reset and per-job force cancel
- Job listing by status
- Blocklist inspection and refresh
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from linkscore.database import JobStatus
from linkscore.errors import NotFoundError

from api.dependencies import Services, get_services, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

FORCE_CANCEL_REASON = "Analysis cancelled by administrator"


class ForceCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, description="Stored as the job's error message")


# ============================================================================
# STUCK JOBS
# ============================================================================

@router.get("/stuck-jobs")
async def list_stuck_jobs(
    minutes: int = Query(default=15, ge=1, le=1440),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Processing jobs with no activity for `minutes`."""
    jobs = services.reaper.list_stuck_jobs(minutes)
    return {"count": len(jobs), "thresholdMinutes": minutes, "jobs": jobs}


@router.post("/cleanup-stuck")
async def cleanup_stuck_jobs(
    minutes: int = Query(default=15, ge=1, le=1440),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    logger.info(f"Admin cleanup requested (threshold {minutes} min)")
    return services.reaper.cleanup(minutes)


@router.post("/kill-long-queries")
async def kill_long_queries(
    minutes: int = Query(default=10, ge=1, le=1440),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return services.reaper.kill_long_running_queries(minutes)


@router.post("/force-cleanup")
async def force_cleanup(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Cleanup and query kill with 5-minute thresholds."""
    return services.reaper.force_cleanup()


@router.post("/emergency-reset")
async def emergency_reset(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Cancel every processing job."""
    logger.warning("Admin emergency reset requested")
    return services.reaper.emergency_reset()


@router.post("/jobs/{job_id}/force-cancel")
async def force_cancel_job(
    job_id: str,
    payload: Optional[ForceCancelRequest] = None,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Cancel a job regardless of its current state."""
    reason = (payload.reason if payload else None) or FORCE_CANCEL_REASON
    try:
        cancelled = services.repo.force_cancel(job_id, reason)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "id": job_id,
        "cancelled": cancelled,
        "message": "Analysis force-cancelled" if cancelled else "Analysis already cancelled",
    }


@router.get("/jobs")
async def list_jobs(
    status: JobStatus = Query(default=JobStatus.PROCESSING),
    limit: int = Query(default=50, ge=1, le=500),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Jobs in one status, oldest first."""
    jobs = services.repo.list_by_status(status, limit=limit)
    return {
        "status": status.value,
        "count": len(jobs),
        "jobs": [
            {
                "id": job.id,
                "domain": job.domain,
                "createdAt": job.created_at.isoformat() if job.created_at else None,
                "updatedAt": job.updated_at.isoformat() if job.updated_at else None,
                "progress": job.progress_percent or 0,
                "error": job.error_message,
            }
            for job in jobs
        ],
    }


@router.get("/jobs/counts")
async def job_counts(services: Services = Depends(get_services)) -> Dict[str, int]:
    return services.repo.count_by_status()


# ============================================================================
# BLOCKLIST
# ============================================================================

@router.get("/blocklist")
async def blocklist_stats(services: Services = Depends(get_services)) -> Dict[str, Any]:
    return services.blocklist.stats()


@router.post("/blocklist/refresh")
async def refresh_blocklist(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Force a fetch of the blocklist CSV, ignoring the TTL."""
    return await services.blocklist.refresh()
