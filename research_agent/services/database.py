"""PostgreSQL result store using asyncpg."""

from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

import asyncpg

from research_agent.config import settings
from research_agent.models.articles import ProgressUpdate, RankedArticle, ResearchResult
from research_agent.models.jobs import Job, JobStatus
from research_agent.services import logger as log_service
from research_agent.services.result_store import TaskLog

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS research_requests (
    id TEXT PRIMARY KEY,
    topic TEXT NOT NULL,
    priority TEXT NOT NULL DEFAULT 'normal',
    status TEXT NOT NULL DEFAULT 'waiting',
    correlation_id TEXT,
    progress DOUBLE PRECISION NOT NULL DEFAULT 0,
    error TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    completed_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS research_results (
    id TEXT PRIMARY KEY,
    research_request_id TEXT NOT NULL REFERENCES research_requests(id) ON DELETE CASCADE,
    summary TEXT NOT NULL,
    key_insights JSONB NOT NULL,
    keywords JSONB,
    total_articles INTEGER,
    sources JSONB NOT NULL,
    confidence DOUBLE PRECISION NOT NULL,
    processing_time INTEGER NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS articles (
    id TEXT PRIMARY KEY,
    research_result_id TEXT NOT NULL REFERENCES research_results(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL,
    summary TEXT,
    content TEXT NOT NULL DEFAULT '',
    source TEXT NOT NULL,
    published_date TIMESTAMPTZ,
    relevance_score DOUBLE PRECISION NOT NULL,
    sentiment TEXT,
    word_count INTEGER,
    extracted_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS task_logs (
    id BIGSERIAL PRIMARY KEY,
    research_request_id TEXT NOT NULL,
    level TEXT NOT NULL,
    message TEXT NOT NULL,
    step TEXT,
    progress INTEGER NOT NULL DEFAULT 0,
    context JSONB,
    timestamp TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

INSERT_ARTICLE_SQL = """
INSERT INTO articles (
    id, research_result_id, position, title, url, summary, content, source,
    published_date, relevance_score, sentiment, word_count
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
"""


def _coerce_json_list(value: Any) -> list[Any]:
    """Normalize JSON columns that may come back as strings."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def _coerce_json_object(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _article_row(result_id: str, position: int, article: RankedArticle) -> tuple[Any, ...]:
    return (
        uuid4().hex,
        result_id,
        position,
        article.title,
        article.url,
        article.summary,
        article.content or "",
        article.source,
        article.published_at,
        float(article.relevance_score),
        article.sentiment,
        article.word_count or None,
    )


class PostgresResultStore:
    def __init__(self, database_url: str, *, pool: asyncpg.Pool | None = None):
        self.database_url = database_url
        self._pool = pool

    async def _get_pool(self) -> asyncpg.Pool:
        """Get or create the database connection pool."""
        if self._pool is None:
            if not self.database_url:
                raise RuntimeError("Database not configured. Set DATABASE_URL in .env")
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=settings.database_pool_min_size,
                max_size=settings.database_pool_max_size,
            )
        return self._pool

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def init_schema(self) -> None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            await conn.execute(SCHEMA_SQL)

    async def _set_status(self, job_id: str, status: JobStatus, **extra: Any) -> None:
        pool = await self._get_pool()
        error = extra.get("error")
        async with pool.acquire() as conn:
            if status == JobStatus.COMPLETED:
                await conn.execute(
                    """
                    UPDATE research_requests
                    SET status = $1, progress = 100, completed_at = now(), updated_at = now()
                    WHERE id = $2
                    """,
                    status.value,
                    job_id,
                )
            else:
                await conn.execute(
                    """
                    UPDATE research_requests
                    SET status = $1, error = COALESCE($2, error), updated_at = now()
                    WHERE id = $3
                    """,
                    status.value,
                    error,
                    job_id,
                )
        log_service.log_db_operation("update", "research_requests", status.value, details=job_id)

    # --- Requests ---

    async def create_request(self, job: Job) -> None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO research_requests (id, topic, priority, status, correlation_id, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                job.id,
                job.topic,
                job.priority.value,
                job.status.value,
                job.correlation_id,
                job.created_at,
                job.updated_at,
            )
        log_service.log_db_operation("insert", "research_requests", "success", details=job.id)

    async def record_progress(self, update: ProgressUpdate) -> None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO task_logs (research_request_id, level, message, step, progress, context)
                VALUES ($1, $2, $3, $4, $5, $6)
                """,
                update.job_id,
                update.level,
                update.message,
                update.step,
                update.progress,
                json.dumps(update.context),
            )
            await conn.execute(
                """
                UPDATE research_requests
                SET progress = $1, updated_at = now()
                WHERE id = $2
                """,
                float(update.progress),
                update.job_id,
            )

    async def mark_in_progress(self, job_id: str) -> None:
        await self._set_status(job_id, JobStatus.ACTIVE)

    async def mark_completed(self, job_id: str) -> None:
        await self._set_status(job_id, JobStatus.COMPLETED)

    async def mark_failed(self, job_id: str, error: str) -> None:
        await self._set_status(job_id, JobStatus.FAILED, error=error)

    async def mark_cancelled(self, job_id: str) -> None:
        await self._set_status(job_id, JobStatus.CANCELLED)

    # --- Results ---

    async def save_result(self, job_id: str, result: ResearchResult) -> None:
        """Write the result row and every article in one transaction."""
        pool = await self._get_pool()
        result_id = uuid4().hex
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO research_results (
                        id, research_request_id, summary, key_insights, keywords,
                        total_articles, sources, confidence, processing_time
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    result_id,
                    job_id,
                    result.summary,
                    json.dumps(result.key_insights),
                    json.dumps(result.keywords),
                    result.total_articles,
                    json.dumps(result.sources),
                    result.confidence,
                    result.processing_time,
                )
                if result.articles:
                    await conn.executemany(
                        INSERT_ARTICLE_SQL,
                        [
                            _article_row(result_id, position, article)
                            for position, article in enumerate(result.articles)
                        ],
                    )
        log_service.log_db_operation(
            "insert",
            "research_results",
            "success",
            details=f"{job_id}: {len(result.articles)} articles",
        )

    async def get_result(self, job_id: str) -> ResearchResult | None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, summary, key_insights, keywords, total_articles, confidence, processing_time
                FROM research_results
                WHERE research_request_id = $1
                ORDER BY created_at DESC
                LIMIT 1
                """,
                job_id,
            )
            if not row:
                return None
            article_rows = await conn.fetch(
                """
                SELECT title, url, summary, content, source, published_date,
                       relevance_score, sentiment, word_count
                FROM articles
                WHERE research_result_id = $1
                ORDER BY position
                """,
                row["id"],
            )

        articles = [
            RankedArticle(
                title=r["title"],
                url=r["url"],
                summary=r["summary"] or "",
                content=r["content"] or None,
                source=r["source"],
                published_at=r["published_date"],
                sentiment=r["sentiment"],
                word_count=r["word_count"] or 0,
                relevance_score=r["relevance_score"],
            )
            for r in article_rows
        ]
        return ResearchResult(
            summary=row["summary"],
            key_insights=_coerce_json_list(row["key_insights"]),
            keywords=_coerce_json_list(row["keywords"]),
            articles=articles,
            total_articles=row["total_articles"] or 0,
            processing_time=row["processing_time"],
            confidence=row["confidence"],
        )

    async def get_logs(self, job_id: str) -> list[TaskLog]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT level, message, step, progress, context, timestamp
                FROM task_logs
                WHERE research_request_id = $1
                ORDER BY id
                """,
                job_id,
            )
        return [
            TaskLog(
                job_id=job_id,
                level=r["level"],
                message=r["message"],
                step=r["step"] or "",
                progress=r["progress"],
                context=_coerce_json_object(r["context"]),
                timestamp=r["timestamp"],
            )
            for r in rows
        ]
