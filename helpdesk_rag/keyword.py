"""Lexical fallback ranking over title, body and tag fields."""

import re
from collections.abc import Iterable, Sequence

from helpdesk_rag.config import KeywordWeights
from helpdesk_rag.models import KnowledgeItem, ScoredItem, ScoreMethod

_WORD = re.compile(r"\w+")

STOP_WORDS = frozenset(
    {"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"}
)


def tokenize(query: str, min_length: int = 3) -> list[str]:
    """Case-folded word terms of at least ``min_length`` characters, first occurrence order."""
    seen: dict[str, None] = {}
    for term in _WORD.findall(query.casefold()):
        if len(term) >= min_length:
            seen.setdefault(term, None)
    return list(seen)


def matches_any_term(item: KnowledgeItem, terms: Iterable[str]) -> bool:
    """OR filter used by stores to pre-select keyword candidates."""
    title = item.title.casefold()
    body = item.body.casefold()
    return any(term in title or term in body or term in item.tags for term in terms)


def extract_keywords(text: str, limit: int = 10) -> list[str]:
    """Simple keyword extraction used to tag knowledge items at ingestion."""
    words = re.sub(r"[^\w\s]", " ", text.lower()).split()
    unique: dict[str, None] = {}
    for word in words:
        if len(word) > 3 and word not in STOP_WORDS:
            unique.setdefault(word, None)
    return list(unique)[:limit]


class KeywordRanker:
    """Weighted term-overlap scorer. Never raises; no match means an empty list."""

    def __init__(self, weights: KeywordWeights | None = None):
        self.weights = weights or KeywordWeights()

    def terms(self, query: str) -> list[str]:
        return tokenize(query, self.weights.min_term_length)

    def score(self, item: KnowledgeItem, query: str, terms: Sequence[str]) -> float:
        w = self.weights
        title = item.title.casefold()
        body = item.body.casefold()
        phrase = query.strip().casefold()

        score = 0.0
        for term in terms:
            if term in title:
                score += w.title_term
            if term in body:
                score += w.body_term
            if term in item.tags:
                score += w.tag_term

        if phrase and phrase in title:
            score += w.title_phrase
        if phrase and phrase in body:
            score += w.body_phrase
        return score

    def rank(self, query: str, candidates: Sequence[KnowledgeItem], limit: int) -> list[ScoredItem]:
        terms = self.terms(query)
        if not terms or limit <= 0:
            return []

        scored = []
        for item in candidates:
            value = self.score(item, query, terms)
            if value > 0:
                scored.append(ScoredItem(item=item, score=value, method=ScoreMethod.KEYWORD))

        scored.sort(key=lambda s: s.score, reverse=True)
        return scored[:limit]
