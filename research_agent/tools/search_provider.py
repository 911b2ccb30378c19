from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from research_agent.config import settings
from research_agent.errors import ProviderFailure
from research_agent.models.articles import CandidateArticle
from research_agent.services import logger as log_service


@runtime_checkable
class SearchProvider(Protocol):
    """Contract every content source implements.

    ``search`` should resolve internal failures to an empty list; callers still
    guard against providers that raise or hang.
    """

    name: str

    async def search(self, topic: str) -> list[CandidateArticle]: ...
    async def is_healthy(self) -> bool: ...


@dataclass
class ProviderResponse:
    provider: str
    articles: list[CandidateArticle] = field(default_factory=list)
    error: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


async def _search_one(provider: SearchProvider, topic: str, timeout: float) -> ProviderResponse:
    name = getattr(provider, "name", type(provider).__name__)
    t0 = time.monotonic()
    try:
        try:
            articles = await asyncio.wait_for(provider.search(topic), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ProviderFailure(name, f"timed out after {timeout:g}s") from e
        except Exception as e:
            raise ProviderFailure(name, str(e) or type(e).__name__) from e
    except ProviderFailure as failure:
        elapsed_ms = int((time.monotonic() - t0) * 1000)
        log_service.log_provider_call(
            name, topic, "error", duration_ms=elapsed_ms, error=failure.message
        )
        return ProviderResponse(provider=name, error=failure.message, duration_ms=elapsed_ms)

    elapsed_ms = int((time.monotonic() - t0) * 1000)
    articles = list(articles or [])
    log_service.log_provider_call(
        name, topic, "success", results=len(articles), duration_ms=elapsed_ms
    )
    return ProviderResponse(provider=name, articles=articles, duration_ms=elapsed_ms)


async def search_all(
    providers: list[SearchProvider],
    topic: str,
    *,
    timeout: float | None = None,
) -> list[ProviderResponse]:
    """Query every provider concurrently, each under its own timeout.

    Responses come back in provider order; a failed provider contributes an
    empty response carrying the error message.
    """
    limit = settings.api_timeout_seconds if timeout is None else timeout
    return list(
        await asyncio.gather(*(_search_one(provider, topic, limit) for provider in providers))
    )


def merge_articles(responses: list[ProviderResponse]) -> list[CandidateArticle]:
    merged: list[CandidateArticle] = []
    for response in responses:
        merged.extend(response.articles)
    return merged


async def check_health(providers: list[SearchProvider]) -> dict[str, bool]:
    async def healthy(provider: SearchProvider) -> bool:
        try:
            return bool(
                await asyncio.wait_for(
                    provider.is_healthy(), timeout=settings.health_check_timeout_seconds
                )
            )
        except Exception:
            return False

    results = await asyncio.gather(*(healthy(p) for p in providers))
    return {getattr(p, "name", type(p).__name__): ok for p, ok in zip(providers, results)}


def build_default_providers() -> list[SearchProvider]:
    from research_agent.tools.newsapi_search import NewsApiSearchProvider
    from research_agent.tools.wikipedia_search import WikipediaSearchProvider

    return [WikipediaSearchProvider(), NewsApiSearchProvider()]
