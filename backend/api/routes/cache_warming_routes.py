"""
API — cache warming routes.
Job status plus manual triggers for one job or a full sweep.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request

from api.dependencies import get_scheduler
from api.rate_limit import limiter
from api.schemas import (
    WarmingJobResponse,
    WarmingRunAllResponse,
    WarmingStatusResponse,
)
from application.cache_warming_service import CacheWarmingScheduler, UnknownJobIdError
from domain.constants import ERROR_JOB_FAILED, ERROR_UNKNOWN_JOB, RATE_LIMIT_WARMING_RUN
from domain.entities import WarmingJob
from domain.enums import JobStatus
from logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _to_job_response(job: WarmingJob) -> WarmingJobResponse:
    return WarmingJobResponse(
        id=job.id,
        kind=job.kind.value,
        status=job.status.value,
        last_run_at=job.last_run_at.isoformat() if job.last_run_at else None,
        next_run_at=job.next_run_at.isoformat() if job.next_run_at else None,
        last_error=job.last_error,
    )


def _unknown_job(job_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"error_code": ERROR_UNKNOWN_JOB, "detail": f"Job {job_id} not found"},
    )


@router.get(
    "/cache-warming/status",
    response_model=WarmingStatusResponse,
    summary="Status of every cache warming job",
)
async def warming_status(
    scheduler: CacheWarmingScheduler = Depends(get_scheduler),
) -> WarmingStatusResponse:
    return WarmingStatusResponse(
        jobs=[_to_job_response(job) for job in scheduler.get_status()],
        timestamp=datetime.now(UTC).isoformat(),
        running=scheduler.is_started,
        sweep_in_flight=scheduler.is_sweep_in_flight,
    )


@router.get(
    "/cache-warming/status/{job_id}",
    response_model=WarmingJobResponse,
    summary="Status of one cache warming job",
)
async def warming_job_status(
    job_id: str,
    scheduler: CacheWarmingScheduler = Depends(get_scheduler),
) -> WarmingJobResponse:
    job = scheduler.get_job_status(job_id)
    if job is None:
        raise _unknown_job(job_id)
    return _to_job_response(job)


@router.post(
    "/cache-warming/run/{job_id}",
    response_model=WarmingJobResponse,
    summary="Run one cache warming job now and wait for it",
)
@limiter.limit(RATE_LIMIT_WARMING_RUN)
async def warming_run_job(
    request: Request,
    job_id: str,
    scheduler: CacheWarmingScheduler = Depends(get_scheduler),
) -> WarmingJobResponse:
    try:
        job = await scheduler.run_job(job_id)
    except UnknownJobIdError as e:
        raise _unknown_job(job_id) from e
    if job.status == JobStatus.FAILED:
        raise HTTPException(
            status_code=500,
            detail={"error_code": ERROR_JOB_FAILED, "detail": job.last_error},
        )
    return _to_job_response(job)


@router.post(
    "/cache-warming/run-all",
    response_model=WarmingRunAllResponse,
    summary="Run a full warming sweep now",
)
@limiter.limit(RATE_LIMIT_WARMING_RUN)
async def warming_run_all(
    request: Request,
    scheduler: CacheWarmingScheduler = Depends(get_scheduler),
) -> WarmingRunAllResponse:
    started = await scheduler.run_all()
    if not started:
        return WarmingRunAllResponse(
            status="skipped", message="A warming sweep is already running"
        )
    return WarmingRunAllResponse(status="ok", message="Warming sweep completed")
