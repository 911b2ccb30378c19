from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from research_agent.models.articles import CandidateArticle
from research_agent.tools import search_provider
from research_agent.tools.newsapi_search import NewsApiSearchProvider
from research_agent.tools.wikipedia_search import WikipediaSearchProvider


class _WikipediaApi:
    """Mock Wikipedia that tracks how many summary requests overlap."""

    def __init__(self):
        self.in_flight = 0
        self.peak = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/search/page"):
            return httpx.Response(
                200,
                json={
                    "pages": [
                        {"key": "Climate_change", "title": "Climate change", "excerpt": "..."},
                        {
                            "key": "Global_warming",
                            "title": "Global warming",
                            "excerpt": '<span class="searchmatch">Global</span> warming '
                            "&amp; &quot;heat&quot;",
                        },
                        {"key": "Broken_page", "title": "Broken page"},
                        {"title": "No key, skipped"},
                    ]
                },
            )

        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1

        if path.endswith("/page/summary/Climate_change"):
            return httpx.Response(
                200,
                json={
                    "title": "Climate change",
                    "extract": "Climate change is the long-term shift in temperatures.",
                },
            )
        if path.endswith("/page/summary/Global_warming"):
            return httpx.Response(200, json={"title": "Global warming"})
        return httpx.Response(500)


@pytest.mark.asyncio
async def test_wikipedia_maps_search_hits_to_articles():
    provider = WikipediaSearchProvider(transport=httpx.MockTransport(_WikipediaApi()))

    articles = await provider.search("climate change")

    assert [a.title for a in articles] == ["Climate change", "Global warming"]
    article = articles[0]
    assert article.url == "https://en.wikipedia.org/wiki/Climate_change"
    assert article.summary == "Climate change is the long-term shift in temperatures."
    assert article.content == article.summary
    assert article.word_count == 8
    assert article.source == "Wikipedia"


@pytest.mark.asyncio
async def test_wikipedia_excerpt_fallback_is_plain_text():
    provider = WikipediaSearchProvider(transport=httpx.MockTransport(_WikipediaApi()))

    articles = await provider.search("global warming")

    assert articles[1].summary == 'Global warming & "heat"'


@pytest.mark.asyncio
async def test_wikipedia_fetches_summaries_concurrently():
    api = _WikipediaApi()
    provider = WikipediaSearchProvider(transport=httpx.MockTransport(api))

    await provider.search("climate change")

    assert api.peak == 3


@pytest.mark.asyncio
async def test_wikipedia_returns_empty_list_on_http_error():
    provider = WikipediaSearchProvider(
        transport=httpx.MockTransport(lambda request: httpx.Response(503))
    )
    assert await provider.search("anything") == []
    assert await provider.is_healthy() is False


def _news_handler(request: httpx.Request) -> httpx.Response:
    assert request.url.params["apiKey"] == "test-key"
    if request.url.path.endswith("/top-headlines"):
        return httpx.Response(200, json={"articles": []})
    assert request.url.path.endswith("/everything")
    assert request.url.params["q"] == "climate"
    return httpx.Response(
        200,
        json={
            "articles": [
                {
                    "title": "Glaciers retreat faster",
                    "url": "https://news.example.com/glaciers",
                    "description": "New survey data shows accelerated melting.",
                    "content": "Glaciers in the Alps lost more ice",
                    "publishedAt": "2024-01-15T10:00:00Z",
                    "source": {"id": None, "name": "Reuters"},
                },
                {
                    "title": "[Removed]",
                    "url": "https://removed.example.com",
                    "description": "[Removed]",
                    "source": {"name": "Unknown"},
                },
                {
                    "title": "Relative link",
                    "url": "/local/story",
                    "description": "Dropped because the url is not absolute.",
                    "source": {"name": "Reuters"},
                },
                {
                    "title": "Sea ice &amp; shipping",
                    "url": "https://news.example.com/sea-ice",
                    "description": "<p>Arctic routes open &amp; close</p>",
                    "content": "<ul><li>Shorter</li><li>routes</li></ul>",
                    "source": {"name": "AP"},
                },
                {
                    "title": "No description",
                    "url": "https://news.example.com/empty",
                    "description": None,
                    "source": {"name": "Reuters"},
                },
            ]
        },
    )


@pytest.mark.asyncio
async def test_newsapi_maps_usable_articles():
    provider = NewsApiSearchProvider(
        api_key="test-key", transport=httpx.MockTransport(_news_handler)
    )

    articles = await provider.search("climate")

    assert [a.url for a in articles] == [
        "https://news.example.com/glaciers",
        "https://news.example.com/sea-ice",
    ]
    article = articles[0]
    assert article.source == "Reuters"
    assert article.summary == "New survey data shows accelerated melting."
    assert article.published_at == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    assert article.word_count == 7

    html_item = articles[1]
    assert html_item.summary == "Arctic routes open & close"
    assert html_item.content == "Shorter routes"
    assert html_item.word_count == 2
    assert html_item.published_at is None
    assert await provider.is_healthy() is True


@pytest.mark.asyncio
async def test_newsapi_without_key_is_skipped():
    def fail(request):
        raise AssertionError("no request expected")

    provider = NewsApiSearchProvider(api_key="", transport=httpx.MockTransport(fail))

    assert await provider.search("climate") == []
    assert await provider.is_healthy() is False


class _Provider:
    def __init__(self, name, articles=None, error=None, healthy=True):
        self.name = name
        self.articles = articles or []
        self.error = error
        self.healthy = healthy

    async def search(self, topic):
        if self.error is not None:
            raise self.error
        return self.articles

    async def is_healthy(self):
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return self.healthy


@pytest.mark.asyncio
async def test_search_all_isolates_failures_and_keeps_provider_order():
    first = CandidateArticle(title="First", url="https://a.test/1")
    second = CandidateArticle(title="Second", url="https://a.test/2")
    providers = [
        _Provider("A", [first]),
        _Provider("Broken", error=RuntimeError("boom")),
        _Provider("B", [second]),
    ]

    responses = await search_provider.search_all(providers, "topic", timeout=1)

    assert [r.provider for r in responses] == ["A", "Broken", "B"]
    assert responses[1].ok is False
    assert responses[1].error == "Broken: boom"
    assert search_provider.merge_articles(responses) == [first, second]


@pytest.mark.asyncio
async def test_search_all_times_out_slow_providers():
    class Slow(_Provider):
        async def search(self, topic):
            await asyncio.sleep(10)

    responses = await search_provider.search_all([Slow("Slow")], "topic", timeout=0.05)

    assert responses[0].articles == []
    assert "timed out" in responses[0].error


@pytest.mark.asyncio
async def test_check_health_never_raises():
    providers = [
        _Provider("Up"),
        _Provider("Down", healthy=False),
        _Provider("Crashing", healthy=RuntimeError("dns")),
    ]
    assert await search_provider.check_health(providers) == {
        "Up": True,
        "Down": False,
        "Crashing": False,
    }


def test_default_providers_satisfy_protocol():
    providers = search_provider.build_default_providers()
    assert [p.name for p in providers] == ["Wikipedia", "NewsAPI"]
    assert all(isinstance(p, search_provider.SearchProvider) for p in providers)
