"""Cosine similarity ranking with a two-tier relevance threshold."""

from collections.abc import Sequence

import numpy as np
from loguru import logger

from helpdesk_rag.config import SimilaritySettings
from helpdesk_rag.models import KnowledgeItem, ScoredItem, ScoreMethod


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 for degenerate or mismatched input."""
    if len(a) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if norm == 0.0 or not np.isfinite(norm):
        return 0.0
    score = float(np.dot(va, vb)) / norm
    if not np.isfinite(score):
        return 0.0
    # Floating point can land a hair outside [-1, 1].
    return max(-1.0, min(1.0, score))


class SimilarityRanker:
    """Ranks (item, vector) candidates against a query vector."""

    def __init__(self, settings: SimilaritySettings | None = None):
        self.settings = settings or SimilaritySettings()
        self.anomalies = 0

    def rank(
        self,
        query_vector: Sequence[float],
        candidates: Sequence[tuple[KnowledgeItem, Sequence[float]]],
        limit: int,
        min_score: float | None = None,
    ) -> list[ScoredItem]:
        """Return the best matches, descending by score.

        Candidates scoring at least the candidate threshold are kept; if any of
        them reach the quality threshold only those are returned. An empty
        list means semantic search found nothing usable.
        """
        if limit <= 0 or not query_vector:
            return []
        low = self.settings.candidate_threshold if min_score is None else min_score
        high = max(low, self.settings.quality_threshold)

        scored: list[ScoredItem] = []
        for item, vector in candidates:
            if vector is None or len(vector) != len(query_vector):
                self.anomalies += 1
                logger.warning(
                    f"Skipping item {item.id} ({item.title!r}): embedding length "
                    f"{len(vector) if vector is not None else 0} != {len(query_vector)}"
                )
                continue
            score = max(0.0, cosine_similarity(query_vector, vector))
            if score >= low:
                scored.append(ScoredItem(item=item, score=score, method=ScoreMethod.SEMANTIC))

        scored.sort(key=lambda s: s.score, reverse=True)
        quality = [s for s in scored if s.score >= high]
        if quality:
            logger.debug(f"{len(quality)} quality matches (best {quality[0].score:.3f})")
            return quality[:limit]
        if scored:
            logger.debug(f"No match above {high}; using {len(scored)} weaker matches (best {scored[0].score:.3f})")
        return scored[:limit]
