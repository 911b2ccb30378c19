from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from research_agent.api.deps import get_scheduler
from research_agent.errors import InvalidInputError, JobNotFoundError, QueueFullError
from research_agent.models.jobs import Job
from research_agent.models.schemas import (
    CancelResponse,
    JobResponse,
    JobStatusResponse,
    QueueStatsResponse,
    ResearchRequest,
    ResearchResultResponse,
    TaskLogResponse,
)
from research_agent.services.job_queue import Scheduler

router = APIRouter(prefix="/api", tags=["research"])


def _job_response(job: Job) -> JobResponse:
    return JobResponse(**job.to_dict())


def _not_found(job_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Job {job_id} not found")


@router.post("/research", response_model=JobResponse, status_code=201)
async def submit_research(
    request: ResearchRequest, scheduler: Scheduler = Depends(get_scheduler)
):
    """Queue a research job. Returns immediately; poll the status endpoint."""
    try:
        job = scheduler.submit(request.topic, request.priority)
    except InvalidInputError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except QueueFullError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    return _job_response(job)


@router.get("/research/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, scheduler: Scheduler = Depends(get_scheduler)):
    try:
        view = scheduler.get_status(job_id)
    except JobNotFoundError as e:
        raise _not_found(job_id) from e
    return JobStatusResponse(
        id=view.job_id, status=view.status, progress=view.progress, error=view.error
    )


@router.get("/research/{job_id}/result", response_model=ResearchResultResponse)
async def get_job_result(job_id: str, scheduler: Scheduler = Depends(get_scheduler)):
    """Results outlive the in-memory job, so this reads the store directly."""
    result = await scheduler.get_result(job_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No results for job {job_id}")
    return ResearchResultResponse(**result.to_dict())


@router.get("/research/{job_id}/logs", response_model=list[TaskLogResponse])
async def get_job_logs(job_id: str, scheduler: Scheduler = Depends(get_scheduler)):
    logs = await scheduler.get_logs(job_id)
    return [
        TaskLogResponse(
            level=log.level,
            message=log.message,
            step=log.step,
            progress=log.progress,
            timestamp=log.timestamp,
        )
        for log in logs
    ]


@router.delete("/research/{job_id}", response_model=CancelResponse)
async def cancel_job(job_id: str, scheduler: Scheduler = Depends(get_scheduler)):
    try:
        cancelled = await scheduler.cancel(job_id)
    except JobNotFoundError as e:
        raise _not_found(job_id) from e
    return CancelResponse(id=job_id, cancelled=cancelled)


@router.get("/queue/stats", response_model=QueueStatsResponse)
async def queue_stats(scheduler: Scheduler = Depends(get_scheduler)):
    return QueueStatsResponse(**scheduler.stats().to_dict())
