from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal

Sentiment = Literal["positive", "negative", "neutral"]


@dataclass(slots=True)
class CandidateArticle:
    title: str
    url: str
    summary: str = ""
    source: str = ""
    content: str | None = None
    published_at: datetime | None = None
    sentiment: Sentiment | None = None
    word_count: int = 0

    def is_valid(self) -> bool:
        return bool(self.title.strip() or self.url.strip())

    @property
    def dedupe_key(self) -> str:
        return self.title.lower() + self.url


@dataclass(slots=True)
class RankedArticle(CandidateArticle):
    relevance_score: float = 0.0

    @classmethod
    def from_candidate(cls, article: CandidateArticle, score: float) -> RankedArticle:
        return cls(
            title=article.title,
            url=article.url,
            summary=article.summary,
            source=article.source,
            content=article.content,
            published_at=article.published_at,
            sentiment=article.sentiment,
            word_count=article.word_count,
            relevance_score=score,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["published_at"] = self.published_at.isoformat() if self.published_at else None
        return data


@dataclass(slots=True)
class ResearchResult:
    summary: str
    key_insights: list[str]
    keywords: list[str] = field(default_factory=list)
    articles: list[RankedArticle] = field(default_factory=list)
    total_articles: int = 0
    processing_time: int = 0
    confidence: float = 0.0

    @property
    def sources(self) -> list[str]:
        return list(dict.fromkeys(article.source for article in self.articles))

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "key_insights": list(self.key_insights),
            "keywords": list(self.keywords),
            "articles": [article.to_dict() for article in self.articles],
            "sources": self.sources,
            "total_articles": self.total_articles,
            "processing_time": self.processing_time,
            "confidence": self.confidence,
        }


@dataclass(slots=True)
class ProgressUpdate:
    job_id: str
    progress: int
    message: str
    step: str
    level: str = "INFO"
    context: dict[str, Any] = field(default_factory=dict)
