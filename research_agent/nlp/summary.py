"""Extractive summaries and metric insights over ranked articles."""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime

from research_agent.models.articles import RankedArticle
from research_agent.nlp.ranker import average_relevance

NO_ARTICLES_SUMMARY = "No articles found for analysis."
MIN_SENTENCE_LENGTH = 20
MIN_SIGNIFICANT_WORD_LENGTH = 4
SUMMARY_SENTENCES = 4

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_NON_LETTERS = re.compile(r"[^a-z\s]")


def _significant_words(text: str) -> list[str]:
    cleaned = _NON_LETTERS.sub(" ", text.lower())
    return [w for w in cleaned.split() if len(w) >= MIN_SIGNIFICANT_WORD_LENGTH]


def split_sentences(text: str) -> list[str]:
    return [
        s.strip()
        for s in _SENTENCE_SPLIT.split(text)
        if len(s.strip()) > MIN_SENTENCE_LENGTH
    ]


def _format_date(value: datetime) -> str:
    return value.strftime("%a %b %d %Y")


class SummaryGenerator:
    def __init__(self, max_sentences: int = SUMMARY_SENTENCES):
        self.max_sentences = max_sentences

    def generate_summary(self, articles: Sequence[RankedArticle]) -> str:
        if not articles:
            return NO_ARTICLES_SUMMARY

        sentences = [s for article in articles for s in split_sentences(article.summary)]
        if not sentences:
            return basic_summary(articles)

        freq: dict[str, int] = {}
        for word in _significant_words(" ".join(sentences)):
            freq[word] = freq.get(word, 0) + 1

        scored = [(sentence, self._score_sentence(sentence, freq)) for sentence in sentences]
        top = sorted(scored, key=lambda item: item[1], reverse=True)[: self.max_sentences]
        return ". ".join(sentence for sentence, _ in top) + "."

    @staticmethod
    def _score_sentence(sentence: str, freq: dict[str, int]) -> float:
        words = _significant_words(sentence)
        if not words:
            return 0.0
        return sum(freq.get(word, 0) for word in words) / len(words)

    def generate_insights(self, articles: Sequence[RankedArticle]) -> list[str]:
        """One sentence per metric the articles actually provide data for."""
        if not articles:
            return ["No articles were available to generate insights."]

        insights: list[str] = []

        sources = list(dict.fromkeys(a.source for a in articles if a.source))
        if sources:
            insights.append(
                f"Research covers {len(sources)} different sources including "
                f"{', '.join(sources[:3])}"
            )

        dates = sorted(a.published_at for a in articles if a.published_at is not None)
        if dates:
            insights.append(
                f"Content spans from {_format_date(dates[0])} to {_format_date(dates[-1])}"
            )

        total_words = sum(a.word_count for a in articles)
        if total_words > 0:
            insights.append(
                f"Analysis includes {total_words:,} words across {len(articles)} articles"
            )

        insights.append(
            f"Average content relevance score: {average_relevance(articles):.1f}/10"
        )
        return insights


def basic_summary(articles: Sequence[RankedArticle]) -> str:
    titles = [a.title for a in articles[:5]]
    return (
        f"Research summary based on {len(articles)} articles. "
        f"Key topics include: {', '.join(titles)}"
    )


def fallback_insights(articles: Sequence[RankedArticle]) -> list[str]:
    sources = list(dict.fromkeys(a.source for a in articles if a.source))
    return [
        f"Found {len(articles)} relevant articles",
        f"Sources: {', '.join(sources) if sources else 'none'}",
        "Insights were generated in degraded mode; detailed analysis was unavailable",
    ]


def empty_result_summary(topic: str) -> str:
    return (
        f'No articles were found for "{topic}". The configured sources returned no '
        "results; try a broader or differently worded topic."
    )


def empty_result_insights(topic: str) -> list[str]:
    return [
        f'No source returned articles for "{topic}"',
        "Consider rephrasing the topic or checking provider availability",
    ]
