"""
Scheduled job routes.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, status

from deliveryq.api.dependencies import SchedulerDep
from deliveryq.constants import API_V1_PREFIX, DEFAULT_CLEANUP_DAYS, DEFAULT_LIST_LIMIT
from deliveryq.types.api import (
    CleanupResponse,
    JobDetailResponse,
    ProcessJobResponse,
    ScheduleJobRequest,
    ScheduleJobResponse,
)
from deliveryq.types.job import JobFilter, JobListResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])


async def _require_job(scheduler: SchedulerDep, job_id: str) -> JobDetailResponse:
    result = await scheduler.get_job_status(job_id)
    if not result.exists:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=result.error or "Job not found",
        )
    return JobDetailResponse(id=job_id, **result.model_dump())


@router.post(
    "",
    response_model=ScheduleJobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a job",
    description="Schedule a job to run at a future time.",
)
async def schedule_job(
    request: ScheduleJobRequest,
    scheduler: SchedulerDep,
) -> ScheduleJobResponse:
    """
    Schedule a new job.

    Args:
        request: Job id, type, execution time and data.
        scheduler: The job scheduler.

    Returns:
        ScheduleJobResponse with the canonical job id.

    Raises:
        HTTPException: 400 if the job was rejected.
    """
    result = await scheduler.schedule_job(
        job_id=request.id,
        scheduled_for=request.scheduled_for,
        job_type=request.type,
        data=request.data,
    )

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.error,
        )

    return ScheduleJobResponse(job_id=result.job_id, scheduled_for=result.scheduled_for)


@router.get(
    "",
    response_model=JobListResult,
    summary="List jobs",
    description="List jobs newest first with optional filtering.",
)
async def list_jobs(
    scheduler: SchedulerDep,
    job_status: str = Query(default="", alias="status"),
    job_type: str = Query(default="", alias="type"),
    limit: int = Query(default=DEFAULT_LIST_LIMIT, ge=0, le=500),
    offset: int = Query(default=0, ge=0),
) -> JobListResult:
    """
    List jobs.

    Unknown status values match no jobs.
    """
    return await scheduler.list_jobs(
        JobFilter(status=job_status, type=job_type, limit=limit, offset=offset)
    )


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    summary="Clean up finished jobs",
    description="Remove completed and failed jobs older than the given age.",
)
async def cleanup_jobs(
    scheduler: SchedulerDep,
    older_than_days: int = Query(default=DEFAULT_CLEANUP_DAYS, ge=0),
) -> CleanupResponse:
    removed = await scheduler.cleanup_jobs(older_than_days)
    return CleanupResponse(removed=removed, older_than_days=older_than_days)


@router.get(
    "/{job_id}",
    response_model=JobDetailResponse,
    summary="Get job details",
    description="Get the status and data of a specific job.",
)
async def get_job(job_id: str, scheduler: SchedulerDep) -> JobDetailResponse:
    """
    Get job details by id.

    Raises:
        HTTPException: If the job does not exist.
    """
    return await _require_job(scheduler, job_id)


@router.delete(
    "/{job_id}",
    summary="Cancel a job",
    description="Cancel a job that has not started yet.",
)
async def cancel_job(job_id: str, scheduler: SchedulerDep) -> dict:
    """
    Cancel a scheduled job.

    Raises:
        HTTPException: 404 if the job does not exist, 409 if it already
            started or finished.
    """
    job = await _require_job(scheduler, job_id)

    if not await scheduler.cancel_job(job_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Job cannot be cancelled (current status: {job.status})",
        )

    return {"id": job_id, "cancelled": True}


@router.post(
    "/{job_id}/process",
    response_model=ProcessJobResponse,
    summary="Process a job now",
    description="Run a scheduled job immediately instead of waiting for its time.",
)
async def process_job(job_id: str, scheduler: SchedulerDep) -> ProcessJobResponse:
    """
    Process a scheduled job immediately.

    Raises:
        HTTPException: 404 if the job does not exist, 409 if it is not
            scheduled.
    """
    job = await _require_job(scheduler, job_id)

    if not await scheduler.process_job(job_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Job is not scheduled (current status: {job.status})",
        )

    logger.info("Job processed on request", extra={"job_id": job_id})
    return ProcessJobResponse(id=job_id, processed=True)
