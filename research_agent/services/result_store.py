from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from research_agent.config import settings
from research_agent.models.articles import ProgressUpdate, ResearchResult
from research_agent.models.jobs import Job, JobStatus, utcnow


@dataclass(slots=True)
class TaskLog:
    job_id: str
    level: str
    message: str
    step: str
    progress: int
    context: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class RequestRecord:
    job_id: str
    topic: str
    priority: str
    correlation_id: str | None
    status: JobStatus = JobStatus.WAITING
    progress: int = 0
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None


class ResultStore(Protocol):
    """Durable record of request status, progress logs and final results."""

    async def init_schema(self) -> None: ...
    async def create_request(self, job: Job) -> None: ...
    async def record_progress(self, update: ProgressUpdate) -> None: ...
    async def mark_in_progress(self, job_id: str) -> None: ...
    async def save_result(self, job_id: str, result: ResearchResult) -> None: ...
    async def mark_completed(self, job_id: str) -> None: ...
    async def mark_failed(self, job_id: str, error: str) -> None: ...
    async def mark_cancelled(self, job_id: str) -> None: ...
    async def get_result(self, job_id: str) -> ResearchResult | None: ...
    async def get_logs(self, job_id: str) -> list[TaskLog]: ...
    async def close(self) -> None: ...


class InMemoryResultStore:
    """Process-local store used by the CLI and tests."""

    def __init__(self) -> None:
        self.requests: dict[str, RequestRecord] = {}
        self.results: dict[str, ResearchResult] = {}
        self.logs: dict[str, list[TaskLog]] = {}

    def _request(self, job_id: str) -> RequestRecord:
        record = self.requests.get(job_id)
        if record is None:
            # Jobs may be driven without a prior create_request (e.g. direct pipeline use).
            record = RequestRecord(job_id=job_id, topic="", priority="normal", correlation_id=None)
            self.requests[job_id] = record
        return record

    async def create_request(self, job: Job) -> None:
        self.requests[job.id] = RequestRecord(
            job_id=job.id,
            topic=job.topic,
            priority=job.priority.value,
            correlation_id=job.correlation_id,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )

    async def record_progress(self, update: ProgressUpdate) -> None:
        self.logs.setdefault(update.job_id, []).append(
            TaskLog(
                job_id=update.job_id,
                level=update.level,
                message=update.message,
                step=update.step,
                progress=update.progress,
                context=dict(update.context),
            )
        )
        record = self._request(update.job_id)
        record.progress = update.progress
        record.updated_at = utcnow()

    async def mark_in_progress(self, job_id: str) -> None:
        record = self._request(job_id)
        record.status = JobStatus.ACTIVE
        record.updated_at = utcnow()

    async def save_result(self, job_id: str, result: ResearchResult) -> None:
        # Single assignment: readers see either no result or the whole result.
        self.results[job_id] = copy.deepcopy(result)

    async def mark_completed(self, job_id: str) -> None:
        record = self._request(job_id)
        record.status = JobStatus.COMPLETED
        record.progress = 100
        record.completed_at = record.updated_at = utcnow()

    async def mark_failed(self, job_id: str, error: str) -> None:
        record = self._request(job_id)
        record.status = JobStatus.FAILED
        record.error = error
        record.updated_at = utcnow()

    async def mark_cancelled(self, job_id: str) -> None:
        record = self._request(job_id)
        record.status = JobStatus.CANCELLED
        record.updated_at = utcnow()

    async def get_result(self, job_id: str) -> ResearchResult | None:
        return self.results.get(job_id)

    async def get_logs(self, job_id: str) -> list[TaskLog]:
        return list(self.logs.get(job_id, []))

    async def init_schema(self) -> None:
        return None

    async def close(self) -> None:
        return None


def get_store() -> ResultStore:
    backend = settings.result_store_backend.lower().strip()
    if backend == "memory":
        return InMemoryResultStore()
    if backend == "postgres":
        from research_agent.services.database import PostgresResultStore

        return PostgresResultStore(settings.database_url)
    raise ValueError(f"Unsupported RESULT_STORE_BACKEND: {settings.result_store_backend}")
