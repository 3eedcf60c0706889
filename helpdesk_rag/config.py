"""Pipeline configuration loaded from the environment."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from helpdesk_rag.errors import ConfigurationError

EMBEDDING_PROVIDERS = ("openai", "local", "none")


class ChunkingSettings(BaseModel):
    max_size: int = Field(default=1000, gt=0)
    overlap: int = Field(default=200, ge=0)

    @model_validator(mode="after")
    def _overlap_below_size(self):
        if self.overlap >= self.max_size:
            raise ValueError("chunk overlap must be smaller than max_size")
        return self


class SimilaritySettings(BaseModel):
    # Empirical thresholds; tunable per deployment.
    candidate_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    quality_threshold: float = Field(default=0.6, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _quality_above_candidate(self):
        if self.quality_threshold < self.candidate_threshold:
            raise ValueError("quality_threshold must be >= candidate_threshold")
        return self


class KeywordWeights(BaseModel):
    title_term: float = 3.0
    body_term: float = 1.0
    tag_term: float = 2.0
    title_phrase: float = 5.0
    body_phrase: float = 2.0
    min_term_length: int = 3
    candidate_multiplier: int = Field(default=2, ge=1)


class AugmentationSettings(BaseModel):
    mean_score_threshold: float = 0.6
    recency_terms: tuple[str, ...] = ("current", "latest", "recent", "today", "now")
    recent_year_window: int = Field(default=1, ge=0)


class ContextSettings(BaseModel):
    summary_turns: int = Field(default=6, ge=0)
    summary_max_chars: int = Field(default=200, gt=0)
    max_context_chars: int = Field(default=12000, gt=0)
    history_window: int = Field(default=10, ge=0)


class TimeoutSettings(BaseModel):
    embedding_seconds: float = Field(default=5.0, gt=0)
    web_search_seconds: float = Field(default=5.0, gt=0)
    generation_seconds: float = Field(default=30.0, gt=0)


class Settings(BaseModel):
    """Explicit configuration object passed to every pipeline component."""

    openai_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    company_name: str = "our company"

    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = Field(default=1536, gt=0)
    max_embedding_input_chars: int = Field(default=8000, gt=0)
    embedding_cache_ttl_seconds: float = Field(default=60.0, ge=0)
    embedding_cache_size: int = Field(default=256, ge=1)

    retrieval_limit: int = Field(default=3, ge=1)
    web_search_enabled: bool = True
    web_max_results: int = Field(default=3, ge=1)

    index_path: Path = Path(".chroma_db")
    log_level: str = "INFO"

    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings)
    similarity: SimilaritySettings = Field(default_factory=SimilaritySettings)
    keyword: KeywordWeights = Field(default_factory=KeywordWeights)
    augmentation: AugmentationSettings = Field(default_factory=AugmentationSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)

    @model_validator(mode="after")
    def _known_provider(self):
        if self.embedding_provider not in EMBEDDING_PROVIDERS:
            raise ValueError(
                f"embedding_provider must be one of {', '.join(EMBEDDING_PROVIDERS)}"
            )
        return self

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "Settings":
        """Build settings from environment variables (and an optional .env file)."""
        load_dotenv(dotenv_path=env_file)

        raw: dict = {
            "openai_api_key": _clean(os.getenv("OPENAI_API_KEY")),
            "llm_model": os.getenv("OPENAI_MODEL"),
            "company_name": os.getenv("COMPANY_NAME"),
            "embedding_provider": _lower(os.getenv("EMBEDDING_PROVIDER")),
            "embedding_model": os.getenv("EMBEDDING_MODEL"),
            "embedding_dimensions": os.getenv("EMBEDDING_DIMENSIONS"),
            "web_search_enabled": _flag(os.getenv("WEB_SEARCH_ENABLED")),
            "index_path": os.getenv("INDEX_PATH"),
            "log_level": os.getenv("LOG_LEVEL"),
        }
        similarity = {
            "candidate_threshold": os.getenv("SIMILARITY_CANDIDATE_THRESHOLD"),
            "quality_threshold": os.getenv("SIMILARITY_QUALITY_THRESHOLD"),
        }
        timeouts = {
            "embedding_seconds": os.getenv("EMBEDDING_TIMEOUT_SECONDS"),
            "web_search_seconds": os.getenv("WEB_SEARCH_TIMEOUT_SECONDS"),
        }

        values = {k: v for k, v in raw.items() if v is not None}
        similarity = {k: v for k, v in similarity.items() if v is not None}
        timeouts = {k: v for k, v in timeouts.items() if v is not None}
        if similarity:
            values["similarity"] = similarity
        if timeouts:
            values["timeouts"] = timeouts

        # No usable key means no OpenAI embeddings; keyword search still works.
        if values.get("embedding_provider", "openai") == "openai" and not values.get("openai_api_key"):
            values["embedding_provider"] = "none"

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e


def _clean(value: str | None) -> str | None:
    """Drop blank or placeholder secrets (e.g. 'your-key-here')."""
    if value is None:
        return None
    value = value.strip()
    if not value or "your-" in value or "placeholder" in value:
        return None
    return value


def _lower(value: str | None) -> str | None:
    return value.strip().lower() if value else None


def _flag(value: str | None) -> bool | None:
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")
