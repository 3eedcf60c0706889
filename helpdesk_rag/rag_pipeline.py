"""RAG pipeline orchestrator."""

import asyncio
from collections.abc import Sequence
from typing import Protocol

from loguru import logger

from helpdesk_rag.augmentation import WebAugmentationDecider
from helpdesk_rag.config import Settings
from helpdesk_rag.context import ContextAssembler, build_system_prompt
from helpdesk_rag.embeddings import EmbeddingGateway
from helpdesk_rag.llm_client import OpenAIClient
from helpdesk_rag.models import AnswerResult, ConversationTurn, Role, SamplingOptions, WebResult
from helpdesk_rag.retriever import KnowledgeRetriever
from helpdesk_rag.store import KnowledgeStore
from helpdesk_rag.web_search import DuckDuckGoSearch, WebSearchProvider


class Generator(Protocol):
    async def generate(
        self,
        turns: Sequence[ConversationTurn],
        context_prompt: str,
        options: SamplingOptions | None = None,
    ) -> str: ...


class RAGPipeline:
    """Orchestrates retrieval, web augmentation, context assembly and generation."""

    def __init__(
        self,
        retriever: KnowledgeRetriever,
        generator: Generator,
        web_search: WebSearchProvider | None = None,
        decider: WebAugmentationDecider | None = None,
        assembler: ContextAssembler | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or Settings(embedding_provider="none")
        self.retriever = retriever
        self.generator = generator
        self.web_search = web_search
        self.decider = decider or WebAugmentationDecider(self.settings.augmentation)
        self.assembler = assembler or ContextAssembler(self.settings.context)
        self.sampling = SamplingOptions()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: KnowledgeStore,
        generator: Generator | None = None,
    ) -> "RAGPipeline":
        """Wire every collaborator from explicit settings."""
        gateway = EmbeddingGateway.from_settings(settings)
        retriever = KnowledgeRetriever.from_settings(settings, store, gateway)
        web_search = (
            DuckDuckGoSearch(timeout=settings.timeouts.web_search_seconds)
            if settings.web_search_enabled
            else None
        )
        generator = generator or OpenAIClient(
            api_key=settings.openai_api_key,
            model=settings.llm_model,
            timeout=settings.timeouts.generation_seconds,
        )
        return cls(retriever=retriever, generator=generator, web_search=web_search, settings=settings)

    async def _search_web(self, query: str) -> list[WebResult]:
        try:
            return await asyncio.wait_for(
                self.web_search.search(query, self.settings.web_max_results),
                timeout=self.settings.timeouts.web_search_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Web search timed out; continuing without web results")
            return []
        except Exception as e:
            logger.warning(f"Web search failed ({e!r}); continuing without web results")
            return []

    async def answer(self, query: str, history: Sequence[ConversationTurn] = ()) -> AnswerResult:
        """Answer a user question using knowledge, optional web results and recent conversation."""
        query = query.strip()
        if not query:
            raise ValueError("Message is required")

        knowledge = await self.retriever.retrieve(query, self.settings.retrieval_limit)

        web_results: list[WebResult] = []
        if self.web_search is not None and self.decider.should_augment(query, knowledge):
            web_results = await self._search_web(query)

        context = self.assembler.assemble(knowledge, web_results, history)
        system_prompt = build_system_prompt(context, self.settings.company_name)

        window = self.settings.context.history_window
        recent = list(history)[-(window - 1):] if window > 1 else []
        turns = recent + [ConversationTurn(role=Role.USER, text=query)]

        response = await self.generator.generate(turns, system_prompt, self.sampling)
        return AnswerResult(
            response_text=response,
            used_knowledge_ids=list(context.knowledge_ids),
            used_web_results=context.web_result_count > 0,
        )
