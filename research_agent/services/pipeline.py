"""Research pipeline: fetch -> dedupe -> rank -> keywords -> summarize -> persist."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from research_agent.config import settings
from research_agent.errors import PersistFailure
from research_agent.models.articles import ProgressUpdate, RankedArticle, ResearchResult
from research_agent.models.jobs import Job
from research_agent.nlp import ranker
from research_agent.nlp.keywords import KeywordExtractor, frequency_keywords
from research_agent.nlp.summary import (
    SummaryGenerator,
    basic_summary,
    empty_result_insights,
    empty_result_summary,
    fallback_insights,
)
from research_agent.services import logger as log_service
from research_agent.services.logger import logger
from research_agent.services.result_store import ResultStore
from research_agent.tools import search_provider
from research_agent.tools.search_provider import SearchProvider

ProgressCallback = Callable[[ProgressUpdate], None]

_STEP_STATUS = {"WARN": "fallback", "ERROR": "error"}

# (progress, message, step) checkpoints, reported in this order.
INIT = (0, "Starting research", "INIT")
FETCH = (10, "Fetching articles", "FETCH")
PROCESS = (40, "Processing articles", "PROCESS")
KEYWORDS = (70, "Extracting keywords", "KEYWORDS")
SUMMARY = (85, "Generating summary", "SUMMARY")
SAVE = (95, "Saving results", "SAVE")
COMPLETED = (100, "Research completed", "COMPLETED")


class ProgressReporter:
    """Writes checkpoints for one job. Progress never moves backwards and
    store failures are logged, never raised."""

    def __init__(
        self,
        job_id: str,
        store: ResultStore,
        *,
        timeout: float,
        on_progress: ProgressCallback | None = None,
    ):
        self.job_id = job_id
        self.store = store
        self.timeout = timeout
        self.on_progress = on_progress
        self.progress = 0

    async def checkpoint(self, checkpoint: tuple[int, str, str], **context: Any) -> None:
        progress, message, step = checkpoint
        if progress < self.progress:
            raise ValueError(f"progress went backwards: {self.progress} -> {progress}")
        self.progress = progress
        await self._write(ProgressUpdate(self.job_id, progress, message, step, context=context))

    async def log(self, message: str, step: str, *, level: str = "INFO", **context: Any) -> None:
        """Log entry that keeps the current progress value."""
        await self._write(
            ProgressUpdate(self.job_id, self.progress, message, step, level=level, context=context)
        )

    async def guarded(self, operation: str, coro) -> None:
        try:
            await asyncio.wait_for(coro, timeout=self.timeout)
        except Exception as e:
            log_service.log_db_operation(
                operation, "research_requests", "error", error=str(e) or type(e).__name__
            )

    async def _write(self, update: ProgressUpdate) -> None:
        if self.on_progress is not None:
            self.on_progress(update)
        log_service.log_pipeline_step(
            self.job_id,
            update.step,
            _STEP_STATUS.get(update.level, "progress"),
            {"progress": update.progress, "message": update.message},
        )
        await self.guarded("record_progress", self.store.record_progress(update))


class ResearchPipeline:
    def __init__(
        self,
        providers: list[SearchProvider],
        store: ResultStore,
        *,
        keyword_extractor: KeywordExtractor | None = None,
        summary_generator: SummaryGenerator | None = None,
        provider_timeout: float | None = None,
        progress_timeout: float | None = None,
        persist_timeout: float | None = None,
        max_articles: int | None = None,
    ):
        self.providers = providers
        self.store = store
        self.keyword_extractor = keyword_extractor or KeywordExtractor(settings.max_keywords)
        self.summary_generator = summary_generator or SummaryGenerator()
        self.provider_timeout = provider_timeout or settings.api_timeout_seconds
        self.progress_timeout = progress_timeout or settings.progress_write_timeout_seconds
        self.persist_timeout = persist_timeout or settings.persist_timeout_seconds
        self.max_articles = max_articles or settings.max_ranked_articles

    async def run(
        self,
        job: Job,
        on_progress: ProgressCallback | None = None,
    ) -> ResearchResult:
        """Run every stage for ``job`` and return the persisted result.

        Raises ``PersistFailure`` when the final save fails; every other
        degraded condition is absorbed into the result.
        """
        started = time.monotonic()
        reporter = ProgressReporter(
            job.id, self.store, timeout=self.progress_timeout, on_progress=on_progress
        )
        try:
            await reporter.guarded("mark_in_progress", self.store.mark_in_progress(job.id))
            await reporter.checkpoint(INIT, topic=job.topic)

            await reporter.checkpoint(FETCH)
            responses = await search_provider.search_all(
                self.providers, job.topic, timeout=self.provider_timeout
            )
            for response in responses:
                if not response.ok:
                    await reporter.log(
                        f"Provider {response.provider} failed: {response.error}",
                        "FETCH",
                        level="WARN",
                        provider=response.provider,
                    )
            candidates = search_provider.merge_articles(responses)

            if not candidates:
                result = self._empty_result(job.topic, started)
                await self._persist(job, result, reporter)
                return result

            await reporter.checkpoint(PROCESS, fetched=len(candidates))
            articles = ranker.process_articles(candidates, job.topic, limit=self.max_articles)

            await reporter.checkpoint(KEYWORDS, articles=len(articles))
            keywords = await self._extract_keywords(articles, reporter)

            await reporter.checkpoint(SUMMARY)
            summary, insights = await self._summarize(articles, reporter)

            result = ResearchResult(
                summary=summary,
                key_insights=insights,
                keywords=keywords,
                articles=articles,
                total_articles=len(articles),
                processing_time=_elapsed_ms(started),
                confidence=ranker.calculate_confidence(articles),
            )
            await self._persist(job, result, reporter)
            return result
        except Exception as e:
            await self._handle_error(job, e, reporter)
            raise

    async def _extract_keywords(
        self, articles: list[RankedArticle], reporter: ProgressReporter
    ) -> list[str]:
        text = " ".join(f"{a.title} {a.summary}" for a in articles)
        try:
            return self.keyword_extractor.extract(text)
        except Exception as e:
            await reporter.log(
                f"Keyword extraction failed, using frequency fallback: {e}",
                "KEYWORDS_FALLBACK",
                level="WARN",
            )
            return frequency_keywords(text, settings.fallback_max_keywords)

    async def _summarize(
        self, articles: list[RankedArticle], reporter: ProgressReporter
    ) -> tuple[str, list[str]]:
        try:
            summary = self.summary_generator.generate_summary(articles)
            insights = self.summary_generator.generate_insights(articles)
            if not summary or not insights:
                raise ValueError("summary generator returned an empty summary or no insights")
            return summary, insights
        except Exception as e:
            await reporter.log(
                f"Summary generation failed, using basic summary: {e}",
                "SUMMARY_FALLBACK",
                level="WARN",
            )
            return basic_summary(articles), fallback_insights(articles)

    def _empty_result(self, topic: str, started: float) -> ResearchResult:
        return ResearchResult(
            summary=empty_result_summary(topic),
            key_insights=empty_result_insights(topic),
            keywords=[],
            articles=[],
            total_articles=0,
            processing_time=_elapsed_ms(started),
            confidence=0.0,
        )

    async def _persist(self, job: Job, result: ResearchResult, reporter: ProgressReporter) -> None:
        await reporter.checkpoint(SAVE, articles=result.total_articles)
        try:
            await asyncio.wait_for(
                self.store.save_result(job.id, result), timeout=self.persist_timeout
            )
        except asyncio.TimeoutError as e:
            raise PersistFailure(
                f"Saving results timed out after {self.persist_timeout:g}s"
            ) from e
        except Exception as e:
            raise PersistFailure(f"Failed to save results: {e}") from e

        await reporter.checkpoint(
            COMPLETED,
            total_articles=result.total_articles,
            confidence=result.confidence,
        )
        await reporter.guarded("mark_completed", self.store.mark_completed(job.id))

    async def _handle_error(self, job: Job, error: Exception, reporter: ProgressReporter) -> None:
        message = str(error) or type(error).__name__
        logger.opt(exception=error).error(f"Research pipeline failed for job {job.id}: {message}")
        await reporter.guarded("mark_failed", self.store.mark_failed(job.id, message))
        await reporter.log("Research job failed", "ERROR", level="ERROR", error=message)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
