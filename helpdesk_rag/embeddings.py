"""Embedding providers and the gateway that turns their failures into results."""

import asyncio
import math
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from loguru import logger
from openai import AsyncOpenAI, OpenAIError

from helpdesk_rag.config import Settings
from helpdesk_rag.errors import ProviderUnavailableError


class EmbeddingProvider(Protocol):
    async def embed_query(self, text: str) -> list[float]: ...

    async def embed_texts(self, texts: list[str]) -> list[list[float]]: ...


class OpenAIEmbeddings:
    """Async OpenAI embeddings client with batching."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        batch_size: int = 100,
        timeout: float | None = None,
    ):
        if not api_key:
            raise ProviderUnavailableError("OPENAI_API_KEY is required for OpenAI embeddings")
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.batch_size = batch_size

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        response = await self.client.embeddings.create(model=self.model, input=texts)
        return [item.embedding for item in response.data]

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in batches, preserving input order."""
        if not texts:
            return []
        embeddings: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            embeddings.extend(await self._embed_batch(texts[start:start + self.batch_size]))
        return embeddings

    async def embed_query(self, text: str) -> list[float]:
        results = await self._embed_batch([text])
        return results[0]


@lru_cache(maxsize=4)
def _load_model(model_name: str):
    """Load and cache a SentenceTransformer model (avoids reloading on repeated calls)."""
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


class LocalEmbeddings:
    """Local sentence-transformers embeddings, no API key required.

    The default "BAAI/bge-small-en-v1.5" produces 384-dimensional vectors;
    set EMBEDDING_DIMENSIONS accordingly.
    """

    def __init__(self, model: str = "BAAI/bge-small-en-v1.5", batch_size: int = 64):
        self.model_name = model
        self.batch_size = batch_size
        self._model = _load_model(model)

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts. Runs in a thread pool to avoid blocking the event loop."""
        if not texts:
            return []
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self._model.encode(
                texts,
                batch_size=self.batch_size,
                show_progress_bar=False,
                normalize_embeddings=True,
                convert_to_numpy=True,
            ).tolist(),
        )

    async def embed_query(self, text: str) -> list[float]:
        results = await self.embed_texts([text])
        return results[0]


def build_embedding_provider(settings: Settings) -> EmbeddingProvider | None:
    """Select the embedding provider named in settings; None means keyword-only search."""
    if settings.embedding_provider == "none":
        logger.info("No embedding provider configured, keyword search only")
        return None
    if settings.embedding_provider == "local":
        return LocalEmbeddings(model=settings.embedding_model)
    try:
        return OpenAIEmbeddings(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            timeout=settings.timeouts.embedding_seconds,
        )
    except ProviderUnavailableError as e:
        logger.warning(f"Embeddings disabled: {e}")
        return None


def build_embedding_excerpt(title: str, body: str, max_chars: int = 8000) -> str:
    """Representative text for embedding a long document: title, head and tail of the body."""
    text = f"{title}\n\n{body}".strip()
    if len(text) <= max_chars:
        return text

    marker = "\n...\n"
    header = f"{title}\n\n"
    room = max_chars - len(header) - len(marker)
    if room <= 0:
        return title[:max_chars]
    head = room // 2 + room % 2
    tail = room // 2
    return f"{header}{body[:head]}{marker}{body[len(body) - tail:] if tail else ''}"


@dataclass(frozen=True)
class EmbeddingResult:
    vector: list[float] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.vector is not None


class EmbeddingGateway:
    """Calls an embedding provider and reports failures as results, never as exceptions.

    Input longer than ``max_input_chars`` is rejected rather than truncated;
    callers build an excerpt with :func:`build_embedding_excerpt` first.
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None,
        dimensions: int,
        timeout: float = 5.0,
        max_input_chars: int = 8000,
        cache_ttl: float = 0.0,
        cache_size: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.dimensions = dimensions
        self.timeout = timeout
        self.max_input_chars = max_input_chars
        self.cache_ttl = cache_ttl
        self.cache_size = cache_size
        self.clock = clock
        # Oldest write first; entries expire in insertion order.
        self._cache: OrderedDict[str, tuple[float, list[float]]] = OrderedDict()

    @classmethod
    def from_settings(cls, settings: Settings, provider: EmbeddingProvider | None = None) -> "EmbeddingGateway":
        return cls(
            provider=provider if provider is not None else build_embedding_provider(settings),
            dimensions=settings.embedding_dimensions,
            timeout=settings.timeouts.embedding_seconds,
            max_input_chars=settings.max_embedding_input_chars,
            cache_ttl=settings.embedding_cache_ttl_seconds,
            cache_size=settings.embedding_cache_size,
        )

    @property
    def configured(self) -> bool:
        return self.provider is not None

    def _cached(self, text: str) -> list[float] | None:
        if self.cache_ttl <= 0:
            return None
        entry = self._cache.get(text)
        if entry is None:
            return None
        stored_at, vector = entry
        if self.clock() - stored_at > self.cache_ttl:
            del self._cache[text]
            return None
        return vector

    def _remember(self, text: str, vector: list[float]) -> None:
        now = self.clock()
        while self._cache:
            oldest = next(iter(self._cache))
            if now - self._cache[oldest][0] <= self.cache_ttl:
                break
            del self._cache[oldest]
        self._cache.pop(text, None)
        self._cache[text] = (now, vector)
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

    def _validate(self, payload) -> list[float] | None:
        if not isinstance(payload, (list, tuple)) or len(payload) != self.dimensions:
            return None
        try:
            vector = [float(v) for v in payload]
        except (TypeError, ValueError):
            return None
        if not all(math.isfinite(v) for v in vector):
            return None
        return vector

    async def embed(self, text: str, use_cache: bool = True) -> EmbeddingResult:
        """Embed one text. ``use_cache=False`` bypasses the memo for one-off inputs such as documents."""
        if self.provider is None:
            return EmbeddingResult(error="unconfigured")
        if not text or not text.strip():
            return EmbeddingResult(error="empty_input")
        if len(text) > self.max_input_chars:
            logger.warning(
                f"Embedding input of {len(text)} chars exceeds {self.max_input_chars}; build an excerpt first"
            )
            return EmbeddingResult(error="input_too_long")

        use_cache = use_cache and self.cache_ttl > 0
        cached = self._cached(text) if use_cache else None
        if cached is not None:
            return EmbeddingResult(vector=cached)

        try:
            payload = await asyncio.wait_for(self.provider.embed_query(text), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Embedding provider timed out after {self.timeout}s")
            return EmbeddingResult(error="timeout")
        except (OpenAIError, ProviderUnavailableError, OSError) as e:
            logger.warning(f"Embedding provider unavailable: {e}")
            return EmbeddingResult(error="unavailable")
        except Exception as e:
            logger.error(f"Embedding generation error: {e!r}")
            return EmbeddingResult(error="unavailable")

        vector = self._validate(payload)
        if vector is None:
            logger.warning(f"Malformed embedding payload (expected {self.dimensions} finite floats)")
            return EmbeddingResult(error="malformed")

        if use_cache:
            self._remember(text, vector)
        return EmbeddingResult(vector=vector)
