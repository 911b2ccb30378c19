from __future__ import annotations

import pytest

from research_agent.models.articles import CandidateArticle, RankedArticle
from research_agent.nlp import ranker


def _article(title: str, url: str = "", summary: str = "", source: str = "Wikipedia"):
    return CandidateArticle(
        title=title,
        url=url or f"https://example.com/{title}",
        summary=summary,
        source=source,
    )


def test_dedupe_keeps_first_occurrence_and_order():
    first = _article("Solar Power", "https://a.test/1", summary="first")
    second = _article("Wind Power", "https://a.test/2")
    duplicate = _article("SOLAR POWER", "https://a.test/1", summary="second")

    deduped = ranker.dedupe_articles([first, second, duplicate])

    assert deduped == [first, second]
    assert deduped[0].summary == "first"


def test_dedupe_is_idempotent():
    articles = [
        _article("A", "https://a.test/1"),
        _article("a", "https://a.test/1"),
        _article("B", "https://a.test/2"),
    ]
    once = ranker.dedupe_articles(articles)
    assert ranker.dedupe_articles(once) == once


def test_same_title_different_url_is_not_a_duplicate():
    articles = [_article("Same", "https://a.test/1"), _article("Same", "https://b.test/1")]
    assert len(ranker.dedupe_articles(articles)) == 2


def test_filter_valid_drops_articles_without_title_and_url():
    empty = CandidateArticle(title="  ", url="")
    only_url = CandidateArticle(title="", url="https://a.test/1")
    assert ranker.filter_valid([empty, only_url]) == [only_url]


def test_rank_orders_by_topic_matches():
    a = _article("Climate change report", summary="New climate data", source="Wikipedia")
    b = _article("Football results", summary="League table", source="NewsAPI")
    c = _article("Climate summit", source="BBC")

    ranked = ranker.rank_articles([a, b, c], "climate change")

    assert [article.title for article in ranked] == [
        "Climate change report",
        "Climate summit",
        "Football results",
    ]
    assert [article.relevance_score for article in ranked] == [6, 2, 0]
    assert all(isinstance(article, RankedArticle) for article in ranked)


def test_rank_keeps_input_order_for_equal_scores():
    articles = [_article(f"Unrelated {i}") for i in range(5)]
    ranked = ranker.rank_articles(articles, "quantum")
    assert [a.title for a in ranked] == [a.title for a in articles]


def test_topic_words_are_matched_literally():
    article = _article("Why c++ beats (rust", summary="c++ c++")
    # Must not raise on regex metacharacters.
    assert ranker.score_article(article, "c++ (rust") == 8


def test_process_articles_limits_output():
    articles = [_article(f"Energy {i}", f"https://a.test/{i}") for i in range(30)]
    assert len(ranker.process_articles(articles, "energy", limit=20)) == 20


def test_confidence_blends_relevance_and_source_variety():
    ranked = ranker.rank_articles(
        [
            _article("Climate change report", summary="New climate data", source="Wikipedia"),
            _article("Football results", source="NewsAPI"),
            _article("Climate summit", source="BBC"),
        ],
        "climate change",
    )
    expected = 0.7 * ((6 + 2 + 0) / 3 / 10) + 0.3 * (3 / 3)
    assert ranker.calculate_confidence(ranked) == pytest.approx(expected)


def test_confidence_is_zero_without_articles_and_capped_at_one():
    assert ranker.calculate_confidence([]) == 0.0
    high = [
        RankedArticle(title=f"t{i}", url=f"u{i}", source=f"s{i}", relevance_score=100)
        for i in range(4)
    ]
    assert ranker.calculate_confidence(high) == 1.0


def test_confidence_is_positive_and_bounded_for_any_articles():
    for score in (0, 1, 5, 14, 50):
        articles = [RankedArticle(title="t", url="u", source="s", relevance_score=score)]
        assert 0.0 < ranker.calculate_confidence(articles) <= 1.0
