from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import quote

import httpx

from research_agent.config import settings
from research_agent.models.articles import CandidateArticle
from research_agent.services.logger import logger
from research_agent.tools import web_utils


class WikipediaSearchProvider:
    """Encyclopedia lookups through the Wikipedia search and REST v1 APIs."""

    name = "Wikipedia"

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        limit: int | None = None,
    ):
        self.transport = transport
        self.limit = limit or settings.wikipedia_search_limit

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or settings.api_timeout_seconds,
            headers={"User-Agent": settings.provider_user_agent},
            transport=self.transport,
        )

    async def search(self, topic: str) -> list[CandidateArticle]:
        try:
            async with self._client() as client:
                response = await client.get(
                    settings.wikipedia_search_url,
                    params={"q": topic, "limit": self.limit},
                )
                response.raise_for_status()
                pages = response.json().get("pages", []) or []

                # Summaries are fetched concurrently; a failed hit drops only itself.
                fetched = await asyncio.gather(
                    *(self._fetch_article(client, item) for item in pages)
                )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Wikipedia search failed for {topic!r}: {e}")
            return []

        return [article for article in fetched if article is not None]

    async def _fetch_article(
        self, client: httpx.AsyncClient, item: dict[str, Any]
    ) -> CandidateArticle | None:
        key = item.get("key")
        if not key:
            return None
        try:
            response = await client.get(
                f"{settings.wikipedia_base_url}/page/summary/{quote(key, safe='')}"
            )
            response.raise_for_status()
            summary = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Failed to fetch Wikipedia article {key}: {e}")
            return None

        extract = summary.get("extract") or web_utils.strip_html(item.get("excerpt"))
        return CandidateArticle(
            title=summary.get("title") or item.get("title") or key,
            url=f"{settings.wikipedia_article_url}{quote(key, safe='')}",
            summary=extract,
            content=extract[: settings.article_content_max_chars] or None,
            source=self.name,
            word_count=web_utils.count_words(extract),
        )

    async def is_healthy(self) -> bool:
        try:
            async with self._client(settings.health_check_timeout_seconds) as client:
                response = await client.get(
                    settings.wikipedia_search_url, params={"q": "test", "limit": 1}
                )
            return response.status_code == 200
        except httpx.HTTPError:
            return False
