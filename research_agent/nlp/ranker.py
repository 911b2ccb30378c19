"""Deduplication, relevance ranking and confidence scoring for candidate articles."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from research_agent.models.articles import CandidateArticle, RankedArticle

MATCH_WEIGHT = 2
MAX_RANKED_ARTICLES = 20


def filter_valid(articles: Iterable[CandidateArticle]) -> list[CandidateArticle]:
    """Drop articles whose title and url are both empty."""
    return [article for article in articles if article.is_valid()]


def dedupe_articles(articles: Iterable[CandidateArticle]) -> list[CandidateArticle]:
    """Remove duplicates by lowercase title + url. First occurrence wins."""
    seen: set[str] = set()
    deduped: list[CandidateArticle] = []
    for article in articles:
        key = article.dedupe_key
        if key in seen:
            continue
        seen.add(key)
        deduped.append(article)
    return deduped


def topic_words(topic: str) -> list[str]:
    return topic.lower().split()


def score_article(article: CandidateArticle, topic: str) -> int:
    text = f"{article.title} {article.summary}".lower()
    score = 0
    for word in topic_words(topic):
        occurrences = len(re.findall(re.escape(word), text))
        score += occurrences * MATCH_WEIGHT
    return score


def rank_articles(articles: Iterable[CandidateArticle], topic: str) -> list[RankedArticle]:
    """Score against the topic and sort by score, highest first.

    ``sorted`` is stable, so equal scores keep their incoming order.
    """
    ranked = [
        RankedArticle.from_candidate(article, score_article(article, topic))
        for article in articles
    ]
    return sorted(ranked, key=lambda a: a.relevance_score, reverse=True)


def process_articles(
    articles: Iterable[CandidateArticle],
    topic: str,
    *,
    limit: int = MAX_RANKED_ARTICLES,
) -> list[RankedArticle]:
    return rank_articles(dedupe_articles(filter_valid(articles)), topic)[:limit]


def average_relevance(articles: Sequence[RankedArticle]) -> float:
    if not articles:
        return 0.0
    return sum(a.relevance_score for a in articles) / len(articles)


def calculate_confidence(articles: Sequence[RankedArticle]) -> float:
    if not articles:
        return 0.0
    source_variety = min(len({a.source for a in articles}), 3)
    confidence = 0.7 * (average_relevance(articles) / 10) + 0.3 * (source_variety / 3)
    return min(confidence, 1.0)
