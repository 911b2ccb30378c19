"""Statistical keyword and phrase extraction. Pure functions, no I/O."""

from __future__ import annotations

import re
from collections import Counter

STOP_WORDS = frozenset(
    """
    a about above after again against all also am an and any are aren as at be
    because been before being below between both but by can cannot could couldn
    did didn do does doesn doing don down during each even ever every few for
    from further get gets got had hadn has hasn have haven having he her here
    hers herself him himself his how however into is isn it its itself just
    like made make many may me might more most much must mustn my myself need
    new no nor not now of off often on once one only or other our ours
    ourselves out over own per said same say says shan she should shouldn
    since so some such than that the their theirs them themselves then there
    these they this those through thus to too two under until up upon us use
    used using very via was wasn way we well were weren what when where which
    while who whom whose why will with within without won would wouldn yet you
    your yours yourself yourselves
    """.split()
)

MIN_TOKEN_LENGTH = 3
PHRASE_WEIGHT = 2
# (exclusive lower, exclusive upper) character bounds for synthesized phrases
BIGRAM_LENGTH = (5, 30)
TRIGRAM_LENGTH = (8, 40)

_NON_LETTERS = re.compile(r"[^a-z\s]")


def tokenize(text: str) -> list[str]:
    """Lowercase, strip non-letters, drop short tokens and stop words."""
    cleaned = _NON_LETTERS.sub(" ", text.lower())
    return [
        word
        for word in cleaned.split()
        if len(word) >= MIN_TOKEN_LENGTH and word not in STOP_WORDS
    ]


def extract_phrases(words: list[str]) -> list[str]:
    phrases: list[str] = []
    for i in range(len(words) - 1):
        phrase = f"{words[i]} {words[i + 1]}"
        if BIGRAM_LENGTH[0] < len(phrase) < BIGRAM_LENGTH[1]:
            phrases.append(phrase)
    for i in range(len(words) - 2):
        phrase = f"{words[i]} {words[i + 1]} {words[i + 2]}"
        if TRIGRAM_LENGTH[0] < len(phrase) < TRIGRAM_LENGTH[1]:
            phrases.append(phrase)
    return phrases


class KeywordExtractor:
    def __init__(self, max_keywords: int = 15):
        self.max_keywords = max_keywords

    def extract(self, text: str, max_keywords: int | None = None) -> list[str]:
        """Top keywords and phrases by weighted frequency.

        Unigrams count 1 per occurrence; each 2- or 3-word phrase occurrence adds
        ``PHRASE_WEIGHT``. Ties keep first-seen order so output is deterministic.
        """
        limit = self.max_keywords if max_keywords is None else max_keywords
        if not text or not text.strip():
            return []

        words = tokenize(text)
        weights: dict[str, int] = {}
        for word in words:
            weights[word] = weights.get(word, 0) + 1
        for phrase in extract_phrases(words):
            weights[phrase] = weights.get(phrase, 0) + PHRASE_WEIGHT

        ranked = sorted(weights.items(), key=lambda item: item[1], reverse=True)
        return [keyword for keyword, _ in ranked[:limit]]


def frequency_keywords(text: str, max_keywords: int = 10) -> list[str]:
    """Plain unigram frequency counter used when phrase extraction fails."""
    if not text:
        return []
    counts = Counter(tokenize(text))
    return [word for word, _ in counts.most_common(max_keywords)]
