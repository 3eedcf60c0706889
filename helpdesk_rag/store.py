"""Knowledge store implementations: in-memory and ChromaDB-backed."""

from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

import chromadb
from chromadb.config import Settings as ChromaSettings
from loguru import logger

from helpdesk_rag.errors import KnowledgeStoreUnavailableError, MalformedCandidateError
from helpdesk_rag.keyword import matches_any_term
from helpdesk_rag.models import EmbeddingState, KnowledgeItem


class KnowledgeStore(Protocol):
    def find_eligible_for_semantic_search(self) -> list[KnowledgeItem]: ...

    def find_by_text_filter(self, terms: list[str], limit: int | None = None) -> list[KnowledgeItem]: ...

    def insert(self, item: KnowledgeItem) -> None: ...

    def delete_by_id(self, item_id: str) -> bool: ...

    def all_items(self) -> list[KnowledgeItem]: ...


def _check_dimensions(item: KnowledgeItem, dimensions: int) -> None:
    if item.has_embedding and len(item.embedding) != dimensions:
        raise MalformedCandidateError(
            f"Item {item.id} embedding has {len(item.embedding)} dimensions, expected {dimensions}"
        )


def _newest_first(items: list[KnowledgeItem]) -> list[KnowledgeItem]:
    return sorted(items, key=lambda item: item.created_at, reverse=True)


class InMemoryKnowledgeStore:
    """Dictionary-backed store, used for tests and small knowledge bases."""

    def __init__(self, dimensions: int, items: list[KnowledgeItem] | None = None):
        self.dimensions = dimensions
        self._items: dict[str, KnowledgeItem] = {}
        for item in items or []:
            self.insert(item)

    def insert(self, item: KnowledgeItem) -> None:
        _check_dimensions(item, self.dimensions)
        self._items[item.id] = item

    def delete_by_id(self, item_id: str) -> bool:
        return self._items.pop(item_id, None) is not None

    def all_items(self) -> list[KnowledgeItem]:
        return _newest_first(list(self._items.values()))

    def find_eligible_for_semantic_search(self) -> list[KnowledgeItem]:
        return [item for item in self.all_items() if item.has_embedding]

    def find_by_text_filter(self, terms: list[str], limit: int | None = None) -> list[KnowledgeItem]:
        if not terms:
            return []
        matches = [item for item in self.all_items() if matches_any_term(item, terms)]
        return matches if limit is None else matches[:limit]


class ChromaKnowledgeStore:
    """Persists knowledge items in a ChromaDB collection.

    Chroma needs a vector for every record, so items without an embedding are
    stored with a zero vector and excluded from semantic search by their
    ``embedding_state`` metadata.
    """

    def __init__(
        self,
        index_path: Path = Path(".chroma_db"),
        dimensions: int = 1536,
        collection_name: str = "knowledge_items",
    ):
        self.index_path = Path(index_path)
        self.dimensions = dimensions
        try:
            self.client = chromadb.PersistentClient(
                path=str(self.index_path), settings=ChromaSettings(anonymized_telemetry=False)
            )
            self.collection = self.client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine", "dimensions": dimensions},
            )
        except Exception as e:
            raise KnowledgeStoreUnavailableError(f"Cannot open knowledge index at {self.index_path}: {e}") from e

    def _to_metadata(self, item: KnowledgeItem) -> dict[str, Any]:
        return {
            "title": item.title,
            "tags": ",".join(sorted(item.tags)),
            "embedding_state": item.embedding_state.value,
            "created_at": item.created_at.isoformat(),
        }

    def _from_record(self, item_id: str, document: str, metadata: dict[str, Any], embedding) -> KnowledgeItem:
        state = EmbeddingState(metadata.get("embedding_state", EmbeddingState.ABSENT.value))
        tags = [t for t in str(metadata.get("tags", "")).split(",") if t]
        return KnowledgeItem(
            id=item_id,
            title=metadata.get("title", ""),
            body=document or "",
            tags=tags,
            embedding=[float(v) for v in embedding] if state == EmbeddingState.GENERATED else None,
            embedding_state=state,
            created_at=datetime.fromisoformat(metadata["created_at"]),
        )

    def _get(self, **kwargs) -> list[KnowledgeItem]:
        include = ["documents", "metadatas", "embeddings"]
        try:
            records = self.collection.get(include=include, **kwargs)
        except Exception as e:
            raise KnowledgeStoreUnavailableError(f"Knowledge index read failed: {e}") from e

        ids = records.get("ids") or []
        documents = records.get("documents")
        metadatas = records.get("metadatas")
        embeddings = records.get("embeddings")
        items = []
        for i, item_id in enumerate(ids):
            embedding = embeddings[i] if embeddings is not None and len(embeddings) > i else None
            try:
                items.append(self._from_record(item_id, documents[i], metadatas[i] or {}, embedding))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping unreadable knowledge record {item_id}: {e}")
        return _newest_first(items)

    def insert(self, item: KnowledgeItem) -> None:
        _check_dimensions(item, self.dimensions)
        vector = item.embedding if item.has_embedding else [0.0] * self.dimensions
        try:
            self.collection.upsert(
                ids=[item.id],
                documents=[item.body],
                embeddings=[vector],
                metadatas=[self._to_metadata(item)],
            )
        except Exception as e:
            raise KnowledgeStoreUnavailableError(f"Knowledge index write failed: {e}") from e

    def delete_by_id(self, item_id: str) -> bool:
        try:
            existing = self.collection.get(ids=[item_id], include=[])
            if not existing.get("ids"):
                return False
            self.collection.delete(ids=[item_id])
        except Exception as e:
            raise KnowledgeStoreUnavailableError(f"Knowledge index delete failed: {e}") from e
        return True

    def all_items(self) -> list[KnowledgeItem]:
        return self._get()

    def find_eligible_for_semantic_search(self) -> list[KnowledgeItem]:
        return self._get(where={"embedding_state": EmbeddingState.GENERATED.value})

    def find_by_text_filter(self, terms: list[str], limit: int | None = None) -> list[KnowledgeItem]:
        if not terms:
            return []
        matches = [item for item in self._get() if matches_any_term(item, terms)]
        return matches if limit is None else matches[:limit]
