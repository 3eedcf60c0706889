"""Pydantic models for the retrieval pipeline."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmbeddingState(str, Enum):
    GENERATED = "generated"
    ABSENT = "absent"
    FAILED = "failed"


class ScoreMethod(str, Enum):
    SEMANTIC = "semantic"
    KEYWORD = "keyword"


class Role(str, Enum):
    USER = "user"
    AGENT = "agent"


class StageStatus(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    FAILURE = "failure"


class KnowledgeItem(BaseModel):
    """A curated knowledge base passage. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str
    body: str
    tags: frozenset[str] = frozenset()
    embedding: list[float] | None = None
    embedding_state: EmbeddingState = EmbeddingState.ABSENT
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value):
        if value is None:
            return frozenset()
        return frozenset(str(tag).strip().lower() for tag in value if str(tag).strip())

    @model_validator(mode="after")
    def _check_embedding_state(self):
        if self.embedding_state == EmbeddingState.GENERATED and not self.embedding:
            raise ValueError("embedding_state 'generated' requires a non-empty embedding")
        return self

    @property
    def has_embedding(self) -> bool:
        return self.embedding_state == EmbeddingState.GENERATED


class ScoredItem(BaseModel):
    """Transient ranking result. Semantic scores lie in [0, 1]; keyword scores are unbounded."""

    item: KnowledgeItem
    score: float = Field(ge=0.0)
    method: ScoreMethod


class ConversationTurn(BaseModel):
    role: Role
    text: str
    at: datetime = Field(default_factory=_utcnow)


class RetrievalQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    max_results: int = Field(default=3, ge=1)
    min_similarity: float = Field(default=0.5, ge=0.0, le=1.0)


class WebResult(BaseModel):
    title: str
    url: str = ""
    snippet: str
    source: str = "web"


class StageResult(BaseModel):
    """Outcome of one retrieval strategy."""

    status: StageStatus
    items: list[ScoredItem] = Field(default_factory=list)
    reason: str = ""

    @classmethod
    def success(cls, items: list[ScoredItem]) -> "StageResult":
        return cls(status=StageStatus.SUCCESS, items=items)

    @classmethod
    def empty(cls, reason: str = "") -> "StageResult":
        return cls(status=StageStatus.EMPTY, reason=reason)

    @classmethod
    def failure(cls, reason: str) -> "StageResult":
        return cls(status=StageStatus.FAILURE, reason=reason)


class AssembledContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    knowledge_section: str = ""
    web_section: str = ""
    summary_section: str = ""
    combined: str = ""
    knowledge_ids: tuple[str, ...] = ()
    web_result_count: int = 0


class SamplingOptions(BaseModel):
    temperature: float = 0.7
    max_tokens: int = 800
    top_p: float = 0.9
    frequency_penalty: float = 0.3
    presence_penalty: float = 0.3


class AnswerResult(BaseModel):
    """Response from the pipeline."""

    response_text: str
    used_knowledge_ids: list[str] = Field(default_factory=list)
    used_web_results: bool = False
