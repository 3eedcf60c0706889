"""Decides whether a query should be supplemented with live web results."""

import re
from collections.abc import Callable, Sequence
from datetime import date

from helpdesk_rag.config import AugmentationSettings
from helpdesk_rag.models import ScoredItem

_YEAR = re.compile(r"\b(19|20)\d{2}\b")


class WebAugmentationDecider:
    """Rules, first match wins: no results, weak mean score, recency wording."""

    def __init__(
        self,
        settings: AugmentationSettings | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.settings = settings or AugmentationSettings()
        self.today = today
        terms = "|".join(re.escape(t) for t in self.settings.recency_terms)
        self._recency = re.compile(rf"\b(?:{terms})\b", re.IGNORECASE) if terms else None

    def mentions_recency(self, query: str) -> bool:
        if self._recency is not None and self._recency.search(query):
            return True
        oldest_recent = self.today().year - self.settings.recent_year_window
        return any(int(m.group(0)) >= oldest_recent for m in _YEAR.finditer(query))

    def should_augment(self, query: str, results: Sequence[ScoredItem]) -> bool:
        if not results:
            return True
        mean = sum(r.score for r in results) / len(results)
        if mean < self.settings.mean_score_threshold:
            return True
        return self.mentions_recency(query)
