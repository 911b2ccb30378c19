from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


class Priority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.NORMAL: 2,
    Priority.HIGH: 3,
}


class JobStatus(StrEnum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Job:
    id: str
    topic: str
    priority: Priority
    sequence: int
    status: JobStatus = JobStatus.WAITING
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    progress: int = 0
    error: str | None = None
    correlation_id: str | None = None
    finished_at: datetime | None = None

    def sort_key(self) -> tuple[int, int]:
        """Highest priority first, then oldest submission.

        ``sequence`` follows submission order exactly, so it stands in for
        ``created_at`` without depending on clock resolution.
        """
        return (-self.priority.rank, self.sequence)

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "topic": self.topic,
            "priority": self.priority.value,
            "status": self.status.value,
            "progress": self.progress,
            "correlation_id": self.correlation_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(slots=True)
class QueueStats:
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "waiting": self.waiting,
            "active": self.active,
            "completed": self.completed,
            "failed": self.failed,
            "total": self.total,
        }


@dataclass(slots=True)
class JobStatusView:
    """Point-in-time snapshot returned to callers polling a job."""

    job_id: str
    status: JobStatus
    progress: int
    error: str | None = None
