from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from research_agent.models.jobs import JobStatus, Priority


# --- Requests ---


class ResearchRequest(BaseModel):
    topic: str
    priority: Priority = Priority.NORMAL


# --- Responses ---


class JobResponse(BaseModel):
    id: str
    topic: str
    status: JobStatus
    priority: Priority
    progress: int
    correlation_id: str | None = None
    created_at: datetime
    updated_at: datetime


class JobStatusResponse(BaseModel):
    id: str
    status: JobStatus
    progress: int
    error: str | None = None


class QueueStatsResponse(BaseModel):
    waiting: int
    active: int
    completed: int
    failed: int
    total: int


class CancelResponse(BaseModel):
    id: str
    cancelled: bool


class ArticleResponse(BaseModel):
    title: str
    url: str
    summary: str
    source: str
    content: str | None = None
    published_at: datetime | None = None
    sentiment: str | None = None
    word_count: int = 0
    relevance_score: float


class ResearchResultResponse(BaseModel):
    summary: str
    key_insights: list[str]
    keywords: list[str]
    articles: list[ArticleResponse]
    sources: list[str] = Field(default_factory=list)
    total_articles: int
    processing_time: int
    confidence: float


class TaskLogResponse(BaseModel):
    level: str
    message: str
    step: str
    progress: int
    timestamp: datetime


class HealthResponse(BaseModel):
    status: str
    service: str
    providers: dict[str, bool] = Field(default_factory=dict)
