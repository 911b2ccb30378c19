"""Priority-ordered in-memory job table and the scheduler that drains it."""

from __future__ import annotations

import asyncio
import itertools
from uuid import uuid4

from research_agent.config import settings
from research_agent.errors import InvalidInputError, JobNotFoundError, QueueFullError
from research_agent.models.articles import ResearchResult
from research_agent.models.jobs import (
    Job,
    JobStatus,
    JobStatusView,
    Priority,
    QueueStats,
)
from research_agent.services import logger as log_service
from research_agent.services.logger import logger
from research_agent.services.pipeline import ResearchPipeline
from research_agent.services.result_store import ResultStore, TaskLog

STOPPED_REASON = "scheduler stopped"


def parse_priority(value: Priority | str | None) -> Priority:
    if value is None:
        return Priority.NORMAL
    if isinstance(value, Priority):
        return value
    try:
        return Priority(str(value).strip().lower())
    except ValueError as e:
        allowed = ", ".join(p.value for p in Priority)
        raise InvalidInputError(f"Priority must be one of: {allowed}", field="priority") from e


class JobQueue:
    """Job table with deterministic selection. No I/O.

    Every method is synchronous, so under asyncio ``claim_next`` selects and
    marks a job active without any other task observing the gap.
    """

    def __init__(self, *, max_size: int | None = None, topic_max_length: int | None = None):
        self.max_size = settings.queue_max_size if max_size is None else max_size
        self.topic_max_length = topic_max_length or settings.topic_max_length
        self._jobs: dict[str, Job] = {}
        self._sequence = itertools.count(1)

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def validate_topic(self, topic: str | None) -> str:
        cleaned = " ".join((topic or "").split())
        if not cleaned:
            raise InvalidInputError("Topic must not be empty", field="topic")
        if len(cleaned) > self.topic_max_length:
            raise InvalidInputError(
                f"Topic must be at most {self.topic_max_length} characters", field="topic"
            )
        return cleaned

    def submit(self, topic: str, priority: Priority | str | None = Priority.NORMAL) -> Job:
        cleaned = self.validate_topic(topic)
        level = parse_priority(priority)
        if self.max_size and self.count(JobStatus.WAITING) >= self.max_size:
            raise QueueFullError(self.max_size)

        job = Job(
            id=f"job-{uuid4().hex}",
            topic=cleaned,
            priority=level,
            sequence=next(self._sequence),
            correlation_id=f"corr-{uuid4().hex[:12]}",
        )
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def next_job(self) -> Job | None:
        waiting = [job for job in self._jobs.values() if job.status == JobStatus.WAITING]
        if not waiting:
            return None
        return min(waiting, key=Job.sort_key)

    def claim_next(self) -> Job | None:
        job = self.next_job()
        if job is not None:
            self.mark_active(job.id)
        return job

    def _transition(self, job_id: str, expected: JobStatus, new: JobStatus) -> Job:
        job = self.get(job_id)
        if job.status != expected:
            raise ValueError(
                f"Job {job_id} cannot move from {job.status.value} to {new.value}"
            )
        job.status = new
        job.touch()
        if new.is_terminal:
            job.finished_at = job.updated_at
        return job

    def mark_active(self, job_id: str) -> Job:
        return self._transition(job_id, JobStatus.WAITING, JobStatus.ACTIVE)

    def mark_completed(self, job_id: str) -> Job:
        job = self._transition(job_id, JobStatus.ACTIVE, JobStatus.COMPLETED)
        job.progress = 100
        return job

    def mark_failed(self, job_id: str, reason: str) -> Job:
        job = self._transition(job_id, JobStatus.ACTIVE, JobStatus.FAILED)
        job.error = reason
        return job

    def update_progress(self, job_id: str, progress: int) -> None:
        job = self._jobs.get(job_id)
        if job is not None and progress >= job.progress:
            job.progress = progress
            job.touch()

    def remove(self, job_id: str) -> bool:
        """Cancel a waiting job or detach a finished one.

        Returns False for active jobs and unknown ids.
        """
        job = self._jobs.get(job_id)
        if job is None or job.status == JobStatus.ACTIVE:
            return False
        if job.status == JobStatus.WAITING:
            self._transition(job_id, JobStatus.WAITING, JobStatus.CANCELLED)
        del self._jobs[job_id]
        return True

    def purge(self, job_id: str) -> bool:
        job = self._jobs.get(job_id)
        if job is None or not job.status.is_terminal:
            return False
        del self._jobs[job_id]
        return True

    def count(self, status: JobStatus) -> int:
        return sum(1 for job in self._jobs.values() if job.status == status)

    def stats(self) -> QueueStats:
        stats = QueueStats()
        for job in self._jobs.values():
            if job.status == JobStatus.WAITING:
                stats.waiting += 1
            elif job.status == JobStatus.ACTIVE:
                stats.active += 1
            elif job.status == JobStatus.COMPLETED:
                stats.completed += 1
            elif job.status == JobStatus.FAILED:
                stats.failed += 1
            stats.total += 1
        return stats


class Scheduler:
    """Owns the job table and a bounded pool of asyncio workers.

    Built once by the composition root (API lifespan or CLI) and passed to
    whoever needs it.
    """

    def __init__(
        self,
        pipeline: ResearchPipeline,
        store: ResultStore,
        *,
        queue: JobQueue | None = None,
        concurrency: int | None = None,
        retention_seconds: float | None = None,
    ):
        self.pipeline = pipeline
        self.store = store
        self.queue = queue if queue is not None else JobQueue()
        self.concurrency = concurrency or settings.worker_concurrency
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.retention_seconds = (
            settings.job_retention_seconds if retention_seconds is None else retention_seconds
        )
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Condition()
        self._workers: list[asyncio.Task] = []
        self._registrations: dict[str, asyncio.Task] = {}
        self._purge_handles: dict[str, asyncio.TimerHandle] = {}

    # --- Lifecycle ---

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"research-worker-{index}")
            for index in range(self.concurrency)
        ]
        log_service.log_event("scheduler_started", "Scheduler started", workers=self.concurrency)

    async def stop(self) -> None:
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        if self._registrations:
            await asyncio.gather(*self._registrations.values(), return_exceptions=True)
            self._registrations.clear()
        for handle in self._purge_handles.values():
            handle.cancel()
        self._purge_handles.clear()
        log_service.log_event("scheduler_stopped", "Scheduler stopped")

    # --- Admission ---

    def submit(self, topic: str, priority: Priority | str | None = Priority.NORMAL) -> Job:
        """Enqueue a job and wake an idle worker. Never waits on the pipeline."""
        job = self.queue.submit(topic, priority)
        self._registrations[job.id] = asyncio.create_task(self._register(job))
        log_service.log_job_event(
            job.id, "submitted", topic=job.topic[:100], priority=job.priority.value
        )
        self._wakeup.set()
        return job

    async def _register(self, job: Job) -> None:
        await self._store_write("insert", job.id, self.store.create_request(job))

    async def _store_write(self, operation: str, job_id: str, coro) -> None:
        """Best-effort store write. Failures and timeouts are logged, never raised."""
        try:
            await asyncio.wait_for(coro, timeout=settings.progress_write_timeout_seconds)
        except Exception as e:
            log_service.log_db_operation(
                operation,
                "research_requests",
                "error",
                details=job_id,
                error=str(e) or type(e).__name__,
            )

    async def _await_registration(self, job_id: str) -> None:
        task = self._registrations.pop(job_id, None)
        if task is not None:
            await task

    # --- Queries ---

    def get_status(self, job_id: str) -> JobStatusView:
        job = self.queue.get(job_id)
        return JobStatusView(
            job_id=job.id, status=job.status, progress=job.progress, error=job.error
        )

    def stats(self) -> QueueStats:
        return self.queue.stats()

    async def get_result(self, job_id: str) -> ResearchResult | None:
        return await self.store.get_result(job_id)

    async def get_logs(self, job_id: str) -> list[TaskLog]:
        return await self.store.get_logs(job_id)

    # --- Cancellation ---

    async def cancel(self, job_id: str) -> bool:
        """Cancel a waiting job. Active jobs always run to completion."""
        job = self.queue.get(job_id)
        was_waiting = job.status == JobStatus.WAITING
        if not self.queue.remove(job_id):
            log_service.log_job_event(job_id, "cancel_rejected", status=job.status.value)
            return False

        handle = self._purge_handles.pop(job_id, None)
        if handle is not None:
            handle.cancel()
        if was_waiting:
            await self._await_registration(job_id)
            await self._store_write("update", job_id, self.store.mark_cancelled(job_id))
            log_service.log_job_event(job_id, "cancelled")
        await self._notify_idle()
        return True

    # --- Execution ---

    def is_idle(self) -> bool:
        stats = self.queue.stats()
        return stats.waiting == 0 and stats.active == 0

    async def wait_idle(self) -> None:
        """Block until no job is waiting or active."""
        async with self._idle:
            await self._idle.wait_for(self.is_idle)

    async def _notify_idle(self) -> None:
        async with self._idle:
            self._idle.notify_all()

    async def _worker(self, index: int) -> None:
        while True:
            job = self.queue.claim_next()
            if job is None:
                self._wakeup.clear()
                await self._wakeup.wait()
                continue
            await self._execute(job, worker=index)

    async def _execute(self, job: Job, *, worker: int) -> None:
        log_service.log_job_event(
            job.id, "started", worker=worker, topic=job.topic[:100], priority=job.priority.value
        )
        try:
            await self._await_registration(job.id)
            result = await self.pipeline.run(
                job, on_progress=lambda update: self.queue.update_progress(job.id, update.progress)
            )
        except Exception as e:
            reason = str(e) or type(e).__name__
            self.queue.mark_failed(job.id, reason)
            log_service.log_job_event(job.id, "failed", error=reason)
        except asyncio.CancelledError:
            # stop() interrupted the run; an active job must still end terminal.
            self.queue.mark_failed(job.id, STOPPED_REASON)
            log_service.log_job_event(job.id, "failed", error=STOPPED_REASON)
            await self._store_write(
                "update", job.id, self.store.mark_failed(job.id, STOPPED_REASON)
            )
            raise
        else:
            self.queue.mark_completed(job.id)
            log_service.log_job_event(
                job.id,
                "completed",
                total_articles=result.total_articles,
                confidence=round(result.confidence, 3),
            )
        finally:
            self._schedule_purge(job.id)
            await self._notify_idle()

    def _schedule_purge(self, job_id: str) -> None:
        if job_id not in self.queue:
            return
        loop = asyncio.get_running_loop()
        self._purge_handles[job_id] = loop.call_later(
            self.retention_seconds, self._purge, job_id
        )

    def _purge(self, job_id: str) -> None:
        self._purge_handles.pop(job_id, None)
        if self.queue.purge(job_id):
            logger.debug(f"Purged finished job {job_id}")
