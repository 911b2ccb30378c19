from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from research_agent.models.articles import ProgressUpdate, RankedArticle, ResearchResult
from research_agent.models.jobs import Job, Priority
from research_agent.services.database import SCHEMA_SQL, PostgresResultStore


def _mock_pool():
    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.executemany = AsyncMock()
    conn.fetchrow = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    pool = MagicMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.close = AsyncMock()
    return pool, conn


def _result() -> ResearchResult:
    return ResearchResult(
        summary="Solar power is growing.",
        key_insights=["Research covers 2 different sources including Wikipedia, BBC"],
        keywords=["solar", "solar power"],
        articles=[
            RankedArticle(title="Solar", url="https://a.test/1", source="Wikipedia", relevance_score=6),
            RankedArticle(title="Panels", url="https://a.test/2", source="BBC", relevance_score=2),
        ],
        total_articles=2,
        processing_time=120,
        confidence=0.62,
    )


@pytest.mark.asyncio
async def test_create_request_inserts_job_row():
    pool, conn = _mock_pool()
    store = PostgresResultStore("", pool=pool)
    job = Job(id="job-1", topic="solar", priority=Priority.HIGH, sequence=1)

    await store.create_request(job)

    args = conn.execute.await_args.args
    assert "INSERT INTO research_requests" in args[0]
    assert args[1:5] == ("job-1", "solar", "high", "waiting")


@pytest.mark.asyncio
async def test_save_result_writes_result_and_articles_in_one_transaction():
    pool, conn = _mock_pool()
    store = PostgresResultStore("", pool=pool)

    await store.save_result("job-1", _result())

    conn.transaction.assert_called_once()
    insert_args = conn.execute.await_args.args
    assert "INSERT INTO research_results" in insert_args[0]
    assert insert_args[2] == "job-1"
    assert json.loads(insert_args[7]) == ["Wikipedia", "BBC"]

    rows = conn.executemany.await_args.args[1]
    assert [row[2] for row in rows] == [0, 1]
    assert [row[3] for row in rows] == ["Solar", "Panels"]
    assert all(row[1] == insert_args[1] for row in rows)


@pytest.mark.asyncio
async def test_save_result_without_articles_skips_article_insert():
    pool, conn = _mock_pool()
    store = PostgresResultStore("", pool=pool)

    await store.save_result("job-1", ResearchResult(summary="none", key_insights=["none"]))

    conn.executemany.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_result_rebuilds_articles_in_position_order():
    pool, conn = _mock_pool()
    conn.fetchrow.return_value = {
        "id": "res-1",
        "summary": "Solar power is growing.",
        "key_insights": '["insight"]',
        "keywords": ["solar"],
        "total_articles": 1,
        "confidence": 0.5,
        "processing_time": 42,
    }
    conn.fetch.return_value = [
        {
            "title": "Solar",
            "url": "https://a.test/1",
            "summary": None,
            "content": "",
            "source": "Wikipedia",
            "published_date": None,
            "relevance_score": 6.0,
            "sentiment": None,
            "word_count": None,
        }
    ]
    store = PostgresResultStore("", pool=pool)

    result = await store.get_result("job-1")

    assert result.key_insights == ["insight"]
    assert result.keywords == ["solar"]
    assert result.articles[0].relevance_score == 6.0
    assert result.articles[0].summary == ""
    assert result.articles[0].content is None
    assert "ORDER BY position" in conn.fetch.await_args.args[0]


@pytest.mark.asyncio
async def test_get_result_missing_returns_none():
    pool, conn = _mock_pool()
    conn.fetchrow.return_value = None
    assert await PostgresResultStore("", pool=pool).get_result("job-1") is None


@pytest.mark.asyncio
async def test_record_progress_appends_log_and_updates_request():
    pool, conn = _mock_pool()
    store = PostgresResultStore("", pool=pool)

    await store.record_progress(
        ProgressUpdate("job-1", 40, "Processing articles", "PROCESS", context={"fetched": 3})
    )

    log_call, update_call = conn.execute.await_args_list
    assert "INSERT INTO task_logs" in log_call.args[0]
    assert json.loads(log_call.args[6]) == {"fetched": 3}
    assert "UPDATE research_requests" in update_call.args[0]
    assert update_call.args[1:] == (40.0, "job-1")


@pytest.mark.asyncio
async def test_mark_failed_records_error():
    pool, conn = _mock_pool()
    await PostgresResultStore("", pool=pool).mark_failed("job-1", "disk full")

    args = conn.execute.await_args.args
    assert args[1:] == ("failed", "disk full", "job-1")


@pytest.mark.asyncio
async def test_missing_database_url_raises():
    with pytest.raises(RuntimeError):
        await PostgresResultStore("").get_logs("job-1")


@pytest.mark.asyncio
async def test_close_releases_pool():
    pool, _ = _mock_pool()
    store = PostgresResultStore("", pool=pool)
    await store.close()
    pool.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_init_schema_creates_tables():
    pool, conn = _mock_pool()
    store = PostgresResultStore("", pool=pool)

    await store.init_schema()

    conn.execute.assert_awaited_once_with(SCHEMA_SQL)
    assert "CREATE TABLE IF NOT EXISTS research_requests" in SCHEMA_SQL
