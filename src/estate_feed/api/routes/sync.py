"""Sync control API endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query
from fastapi.responses import JSONResponse

from estate_feed.api.dependencies import DbSession, SettingsDep
from estate_feed.api.schemas import SyncJobCreate, SyncJobListResponse, SyncStartResponse
from estate_feed.config import AppSettings
from estate_feed.models.pydantic_models import SyncJobRead, SyncMode, SyncState
from estate_feed.services.job_service import JobService, SyncAlreadyRunningError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/jobs", status_code=202, response_model=SyncStartResponse)
async def start_sync(
    request: SyncJobCreate,
    session: DbSession,
    settings: SettingsDep,
    background_tasks: BackgroundTasks,
) -> SyncStartResponse | JSONResponse:
    """Start a sync run in the background.

    Only one sync may run at a time. A request made while another run is
    pending or running is rejected with 409 and the current state.

    Returns:
        Created job and the resulting sync state.
    """
    service = JobService(session)

    try:
        job = service.start_job(request.mode)
    except SyncAlreadyRunningError as e:
        state = service.get_state()
        return JSONResponse(
            status_code=409,
            content={
                "ok": False,
                "detail": str(e),
                "job": e.job.model_dump(mode="json"),
                "state": state.model_dump(mode="json"),
            },
        )

    background_tasks.add_task(
        run_sync_job,
        job_id=job.id,
        mode=request.mode,
        settings=settings,
    )

    return SyncStartResponse(job=job, state=service.get_state())


@router.get("/status", response_model=SyncState)
async def get_sync_status(session: DbSession) -> SyncState:
    """Get the state of the latest sync run."""
    return JobService(session).get_state()


@router.get("/jobs", response_model=SyncJobListResponse)
async def list_sync_jobs(
    session: DbSession,
    limit: int = Query(20, ge=1, le=100, description="Maximum jobs to return"),
) -> SyncJobListResponse:
    """List recent sync jobs, newest first."""
    jobs = JobService(session).get_recent_jobs(limit=limit)
    return SyncJobListResponse(jobs=jobs, count=len(jobs))


@router.get("/jobs/{job_id}", response_model=SyncJobRead)
async def get_sync_job(job_id: int, session: DbSession) -> SyncJobRead:
    """Get sync job status and progress.

    Raises:
        HTTPException: 404 if job not found.
    """
    job = JobService(session).get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job


async def run_sync_job(job_id: int, mode: SyncMode, settings: AppSettings) -> None:
    """Background task to execute a sync job.

    Opens its own database session and records progress on the job row.

    Args:
        job_id: Job ID to execute.
        mode: Sync mode.
        settings: Application settings.
    """
    from estate_feed.database.engine import get_session_factory
    from estate_feed.models.pydantic_models import SyncProgress, SyncStatus
    from estate_feed.services.sync_runner import execute_sync

    session_factory = get_session_factory()
    session = session_factory()
    job_service = JobService(session)

    try:
        job_service.update_status(job_id, status=SyncStatus.RUNNING)

        def on_progress(progress: SyncProgress) -> None:
            job_service.update_progress(
                job_id,
                processed_messages=progress.processed_messages,
                listings_touched=progress.listings_touched,
            )

        result, extraction = await execute_sync(
            session, mode, settings, progress_callback=on_progress
        )
        job_service.complete_job(job_id, result)
        logger.info("Sync job %d (%s) completed", job_id, mode.value)
        if extraction is not None:
            logger.info("Sync job %d extraction updated %d listings", job_id, extraction.updated)

    except Exception as e:
        logger.exception("Sync job %d (%s) failed", job_id, mode.value)
        session.rollback()
        job_service.fail_job(job_id, error_message=str(e))

    finally:
        session.close()
