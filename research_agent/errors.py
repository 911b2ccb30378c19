from __future__ import annotations


class ResearchAgentError(Exception):
    """Base error carrying an API-facing code and HTTP status."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(ResearchAgentError):
    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class JobNotFoundError(ResearchAgentError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class QueueFullError(ResearchAgentError):
    code = "QUEUE_FULL"
    status_code = 503

    def __init__(self, capacity: int):
        super().__init__(f"Job queue is full ({capacity} pending jobs)")
        self.capacity = capacity


class ProviderFailure(ResearchAgentError):
    """A single search provider raised or timed out. Never fails a job."""

    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 502

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class PersistFailure(ResearchAgentError):
    """The final result write failed. Fatal for the job."""

    code = "PERSIST_FAILED"
    status_code = 500
