from __future__ import annotations

from datetime import datetime, timezone

from research_agent.models.articles import RankedArticle
from research_agent.nlp.summary import (
    NO_ARTICLES_SUMMARY,
    SummaryGenerator,
    basic_summary,
    empty_result_insights,
    empty_result_summary,
    fallback_insights,
    split_sentences,
)


def _ranked(title, summary="", source="Wikipedia", score=4.0, published_at=None, word_count=0):
    return RankedArticle(
        title=title,
        url=f"https://example.com/{title}",
        summary=summary,
        source=source,
        published_at=published_at,
        word_count=word_count,
        relevance_score=score,
    )


def test_split_sentences_drops_short_fragments():
    assert split_sentences("Too short. This sentence is long enough to keep! Ok?") == [
        "This sentence is long enough to keep"
    ]


def test_summary_without_articles():
    assert SummaryGenerator().generate_summary([]) == NO_ARTICLES_SUMMARY


def test_summary_picks_sentences_sharing_frequent_words():
    articles = [
        _ranked(
            "Solar",
            "Solar panels convert sunlight into electricity. "
            "Cats sometimes sleep for sixteen hours a day.",
        ),
        _ranked("Grid", "Solar electricity feeds the national grid during sunlight hours."),
    ]

    summary = SummaryGenerator(max_sentences=2).generate_summary(articles)

    assert summary.endswith(".")
    assert "Solar panels convert sunlight into electricity" in summary
    assert "Solar electricity feeds the national grid during sunlight hours" in summary
    assert "Cats" not in summary


def test_summary_caps_sentence_count():
    text = ". ".join(f"Sentence number {i} talks about renewable energy" for i in range(10))
    summary = SummaryGenerator().generate_summary([_ranked("Energy", text)])
    assert summary.count(". ") == 3


def test_summary_falls_back_when_no_sentence_qualifies():
    articles = [_ranked("Alpha", "short"), _ranked("Beta", "")]
    assert SummaryGenerator().generate_summary(articles) == basic_summary(articles)
    assert basic_summary(articles).startswith("Research summary based on 2 articles.")


def test_insights_report_only_available_metrics():
    articles = [_ranked("A", source="Wikipedia", score=4), _ranked("B", source="BBC", score=2)]

    insights = SummaryGenerator().generate_insights(articles)

    assert insights[0] == "Research covers 2 different sources including Wikipedia, BBC"
    assert not any(i.startswith("Content spans") for i in insights)
    assert not any(i.startswith("Analysis includes") for i in insights)
    assert insights[-1] == "Average content relevance score: 3.0/10"


def test_insights_include_date_span_and_word_count():
    articles = [
        _ranked(
            "A",
            published_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
            word_count=1500,
        ),
        _ranked(
            "B",
            published_at=datetime(2024, 1, 15, tzinfo=timezone.utc),
            word_count=250,
        ),
    ]

    insights = SummaryGenerator().generate_insights(articles)

    assert "Content spans from Mon Jan 15 2024 to Fri Mar 01 2024" in insights
    assert "Analysis includes 1,750 words across 2 articles" in insights


def test_insights_without_articles():
    assert len(SummaryGenerator().generate_insights([])) == 1


def test_fallback_and_empty_result_text():
    articles = [_ranked("A", source="Wikipedia"), _ranked("B", source="Wikipedia")]
    insights = fallback_insights(articles)
    assert insights[0] == "Found 2 relevant articles"
    assert insights[1] == "Sources: Wikipedia"
    assert len(insights) == 3

    assert "quantum foam" in empty_result_summary("quantum foam")
    assert empty_result_insights("quantum foam")
