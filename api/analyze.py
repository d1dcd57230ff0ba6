"""
API Endpoints for LinkScore Analysis

FastAPI app that:
1. Accepts campaign submissions (validated, rate limited, blocklist checked)
2. Runs the analysis pipeline in the background
3. Serves status polling, results, cancellation and webhook replay
4. Mounts the admin maintenance routes
"""

import logging
import sys
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from linkscore import __version__
from linkscore.analyzer import ReaperScheduler
from linkscore.database import check_db_connection, get_db_info, init_db
from linkscore.errors import NotFoundError, RateLimitError, StateConflictError, ValidationError
from linkscore.intake import validate_submission
from linkscore.output import format_results

from api.admin import router as admin_router
from api.dependencies import Services, get_client_ip, get_services

# Configure logging to stdout (the platform treats stderr as errors)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

BLOCKED_MESSAGE = "Service temporarily unavailable. Please try again later."

app = FastAPI(
    title="LinkScore Engine",
    description="Backlink authority benchmarking against local competitors, powered by DataForSEO",
    version=__version__,
)
app.include_router(admin_router)

_scheduler: Optional[ReaperScheduler] = None


# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database and start the reaper timer."""
    global _scheduler
    services = app.dependency_overrides.get(get_services, get_services)()
    logging.getLogger().setLevel(services.settings.LOG_LEVEL.upper())

    logger.info("Initializing database...")
    try:
        init_db(services.engine)
        if not check_db_connection(services.engine):
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    if services.settings.ENABLE_REAPER_SCHEDULE:
        _scheduler = ReaperScheduler(
            services.reaper,
            cleanup_interval=services.settings.REAPER_INTERVAL_SECONDS,
            kill_interval=services.settings.QUERY_KILL_INTERVAL_SECONDS,
            stuck_minutes=services.settings.STUCK_JOB_MINUTES,
            query_minutes=services.settings.LONG_QUERY_MINUTES,
        )
        _scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    if _scheduler is not None:
        await _scheduler.stop()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class AnalysisRequest(BaseModel):
    """
    Campaign submission from the intake wizard.

    Types are checked here; ranges and formats are checked by
    validate_submission so the user gets a specific message.
    """
    domain: str = Field(..., description="Customer website, e.g. 'acme.com.au'")
    email: Optional[str] = Field(default=None, description="Contact email")
    company_name: Optional[str] = Field(default=None, alias="company")
    location: str = Field(..., description="Location key, e.g. 'sydney'")
    monthly_spend: float = Field(..., alias="monthlySpend", description="Monthly SEO spend in AUD")
    investment_months: int = Field(..., alias="investmentMonths", description="Months invested so far")
    keywords: List[str] = Field(..., description="2-5 target keywords")

    class Config:
        populate_by_name = True


class AnalysisResponse(BaseModel):
    """Response after submitting an analysis."""
    job_id: str = Field(..., alias="jobId")
    status: str
    message: str

    class Config:
        populate_by_name = True


class CancelResponse(BaseModel):
    success: bool
    message: str
    status: str


# ============================================================================
# ENDPOINTS
# ============================================================================

@app.get("/api/health")
async def health(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Liveness plus database connectivity."""
    db = get_db_info(services.engine)
    return {
        "status": "healthy" if db["connected"] else "degraded",
        "version": __version__,
        "database": db,
        "dataforseo_configured": services.settings.has_dataforseo_credentials,
    }


@app.post("/api/analyze", response_model=AnalysisResponse, response_model_by_alias=True)
async def submit_analysis(
    payload: AnalysisRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
):
    """
    Validate a submission, create the job and start the pipeline.

    Returns as soon as the job row exists; stages run in the background.
    """
    try:
        params = validate_submission(
            domain=payload.domain,
            location=payload.location,
            monthly_spend=payload.monthly_spend,
            investment_months=payload.investment_months,
            keywords=payload.keywords,
            email=payload.email,
            company_name=payload.company_name,
        )
        services.rate_limiter.enforce(get_client_ip(request))
    except RateLimitError as e:
        headers = {"Retry-After": str(e.retry_after)} if e.retry_after else None
        raise HTTPException(status_code=429, detail=str(e), headers=headers)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if await services.blocklist.is_blocked(params.domain):
        raise HTTPException(status_code=503, detail=BLOCKED_MESSAGE)

    job = services.orchestrator.submit(params)
    background_tasks.add_task(services.orchestrator.run, job.id)
    logger.info(f"[{job.id}] Queued analysis for {params.domain} ({params.location})")

    return AnalysisResponse(job_id=job.id, status=job.status.value, message="Analysis started")


@app.get("/api/analyze/{job_id}/status")
async def analysis_status(job_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Current status and, while processing, the latest progress snapshot."""
    try:
        return services.orchestrator.status(job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/api/analyze/{job_id}/results")
async def analysis_results(job_id: str, services: Services = Depends(get_services)):
    """Full results for a completed analysis; 202 while it is still running."""
    try:
        job = services.orchestrator.results(job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StateConflictError:
        current = services.orchestrator.status(job_id)
        return JSONResponse(
            status_code=202,
            content={
                "ready": False,
                "status": current["status"],
                "progress": current.get("progress", 0),
                "message": current.get("message"),
            },
        )
    return format_results(job)


@app.post("/api/analyze/{job_id}/cancel", response_model=CancelResponse)
async def cancel_analysis(job_id: str, services: Services = Depends(get_services)):
    """Cancel a pending or processing analysis. Idempotent once cancelled."""
    try:
        outcome = services.orchestrator.cancel(job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StateConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CancelResponse(success=True, message=outcome.message, status="cancelled")


@app.post("/api/analyze/{job_id}/notify")
async def replay_notification(job_id: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Re-send the completion webhook for a completed analysis."""
    try:
        report = await services.orchestrator.replay_notification(job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StateConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if report is None:
        return {"jobId": job_id, "delivered": False, "endpoints": []}
    return report.to_dict()


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.analyze:app", host="0.0.0.0", port=8000, reload=True)
