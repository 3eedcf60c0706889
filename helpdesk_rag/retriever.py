"""Knowledge retrieval: semantic search first, keyword search as the universal fallback."""

from collections import Counter
from typing import Protocol

from loguru import logger

from helpdesk_rag.config import Settings
from helpdesk_rag.embeddings import EmbeddingGateway
from helpdesk_rag.keyword import KeywordRanker
from helpdesk_rag.models import RetrievalQuery, ScoredItem, StageResult, StageStatus
from helpdesk_rag.similarity import SimilarityRanker
from helpdesk_rag.store import KnowledgeStore


class RetrievalStats:
    """Counters for retrieval outcomes and degraded paths."""

    def __init__(self):
        self.outcomes: Counter[str] = Counter()
        self.failures: Counter[str] = Counter()

    def record_outcome(self, outcome: str) -> None:
        self.outcomes[outcome] += 1

    def record_failure(self, reason: str, count: int = 1) -> None:
        self.failures[reason] += count

    def snapshot(self) -> dict[str, dict[str, int]]:
        return {"outcomes": dict(self.outcomes), "failures": dict(self.failures)}


class RetrievalStrategy(Protocol):
    name: str

    async def run(self, query: RetrievalQuery) -> StageResult: ...


class SemanticSearchStrategy:
    """Embeds the query and ranks items with generated embeddings by cosine similarity."""

    name = "semantic"

    def __init__(
        self,
        store: KnowledgeStore,
        gateway: EmbeddingGateway,
        ranker: SimilarityRanker,
        stats: RetrievalStats | None = None,
    ):
        self.store = store
        self.gateway = gateway
        self.ranker = ranker
        self.stats = stats

    async def run(self, query: RetrievalQuery) -> StageResult:
        if not self.gateway.configured:
            return StageResult.failure("embedding_unconfigured")
        try:
            eligible = self.store.find_eligible_for_semantic_search()
            if not eligible:
                return StageResult.empty("no_embedded_items")

            embedded = await self.gateway.embed(query.text)
            if not embedded.ok:
                return StageResult.failure(f"embedding_{embedded.error}")

            skipped_before = self.ranker.anomalies
            results = self.ranker.rank(
                embedded.vector,
                [(item, item.embedding) for item in eligible],
                limit=query.max_results,
                min_score=query.min_similarity,
            )
            skipped = self.ranker.anomalies - skipped_before
            if skipped and self.stats is not None:
                self.stats.record_failure("dimension_mismatch", skipped)
        except Exception as e:
            logger.error(f"Semantic search error: {e!r}")
            return StageResult.failure("semantic_error")

        if not results:
            return StageResult.empty(f"below_threshold_{query.min_similarity}")
        return StageResult.success(results)


class KeywordSearchStrategy:
    """Pre-selects items by an OR term filter and scores them lexically.

    Store failures propagate: there is nothing left to fall back to.
    """

    name = "keyword"

    def __init__(self, store: KnowledgeStore, ranker: KeywordRanker):
        self.store = store
        self.ranker = ranker

    async def run(self, query: RetrievalQuery) -> StageResult:
        terms = self.ranker.terms(query.text)
        if not terms:
            return StageResult.empty("no_terms")
        pool = self.store.find_by_text_filter(
            terms, limit=query.max_results * self.ranker.weights.candidate_multiplier
        )
        results = self.ranker.rank(query.text, pool, query.max_results)
        if not results:
            return StageResult.empty("no_keyword_match")
        return StageResult.success(results)


class KnowledgeRetriever:
    """Runs retrieval strategies in order; the first success wins."""

    def __init__(
        self,
        strategies: list[RetrievalStrategy],
        min_similarity: float = 0.5,
        default_limit: int = 3,
        stats: RetrievalStats | None = None,
    ):
        self.strategies = strategies
        self.min_similarity = min_similarity
        self.default_limit = default_limit
        self.stats = stats or RetrievalStats()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: KnowledgeStore,
        gateway: EmbeddingGateway,
    ) -> "KnowledgeRetriever":
        stats = RetrievalStats()
        strategies = [
            SemanticSearchStrategy(store, gateway, SimilarityRanker(settings.similarity), stats),
            KeywordSearchStrategy(store, KeywordRanker(settings.keyword)),
        ]
        return cls(
            strategies,
            min_similarity=settings.similarity.candidate_threshold,
            default_limit=settings.retrieval_limit,
            stats=stats,
        )

    async def retrieve(self, query_text: str, limit: int | None = None) -> list[ScoredItem]:
        query = RetrievalQuery(
            text=query_text,
            max_results=limit if limit is not None else self.default_limit,
            min_similarity=self.min_similarity,
        )

        for strategy in self.strategies:
            result = await strategy.run(query)
            if result.status == StageStatus.SUCCESS:
                items = _unique_by_id(result.items)
                self.stats.record_outcome(strategy.name)
                logger.info(
                    f"Retrieved {len(items)} items via {strategy.name} search "
                    f"(best {items[0].score:.3f})"
                )
                return items
            if result.status == StageStatus.FAILURE:
                self.stats.record_failure(result.reason)
            logger.info(f"{strategy.name} search gave no results ({result.reason}), trying next strategy")

        self.stats.record_outcome("empty")
        return []


def _unique_by_id(items: list[ScoredItem]) -> list[ScoredItem]:
    seen: set[str] = set()
    unique = []
    for scored in items:
        if scored.item.id not in seen:
            seen.add(scored.item.id)
            unique.append(scored)
    return unique
