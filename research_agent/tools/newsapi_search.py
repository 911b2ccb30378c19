from __future__ import annotations

from typing import Any

import httpx

from research_agent.config import settings
from research_agent.models.articles import CandidateArticle
from research_agent.services.logger import logger
from research_agent.tools import web_utils


class NewsApiSearchProvider:
    """News aggregation through NewsAPI's /everything endpoint."""

    name = "NewsAPI"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        page_size: int | None = None,
    ):
        self.api_key = settings.news_api_key if api_key is None else api_key
        self.transport = transport
        self.page_size = page_size or settings.news_api_page_size

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=settings.news_api_base_url,
            timeout=timeout or settings.api_timeout_seconds,
            headers={"User-Agent": settings.provider_user_agent},
            transport=self.transport,
        )

    async def search(self, topic: str) -> list[CandidateArticle]:
        if not self.api_key:
            logger.warning("NEWS_API_KEY is not configured, skipping NewsAPI search")
            return []

        try:
            async with self._client() as client:
                response = await client.get(
                    "/everything",
                    params={
                        "q": topic,
                        "apiKey": self.api_key,
                        "language": "en",
                        "sortBy": "relevancy",
                        "pageSize": self.page_size,
                    },
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"NewsAPI search failed for {topic!r}: {e}")
            return []

        return [
            self._to_article(item)
            for item in payload.get("articles", []) or []
            if _is_usable(item)
        ]

    def _to_article(self, item: dict[str, Any]) -> CandidateArticle:
        content = web_utils.strip_html(item.get("content"))
        source = (item.get("source") or {}).get("name") or self.name
        return CandidateArticle(
            title=item["title"],
            url=item["url"],
            summary=web_utils.strip_html(item.get("description")),
            content=content[: settings.article_content_max_chars] or None,
            published_at=web_utils.parse_datetime(item.get("publishedAt")),
            source=source,
            word_count=web_utils.count_words(content),
        )

    async def is_healthy(self) -> bool:
        if not self.api_key:
            return False
        try:
            async with self._client(settings.health_check_timeout_seconds) as client:
                response = await client.get(
                    "/top-headlines",
                    params={"apiKey": self.api_key, "country": "us", "pageSize": 1},
                )
            return response.status_code == 200
        except httpx.HTTPError:
            return False


def _is_usable(item: dict[str, Any]) -> bool:
    title = item.get("title") or ""
    if not title or "[Removed]" in title or not item.get("description"):
        return False
    return web_utils.is_valid_url(item.get("url"))
