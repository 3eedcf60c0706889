"""Tests for helpdesk_rag.store — in-memory store directly, chromadb mocked."""

from unittest.mock import MagicMock, patch

import pytest

from helpdesk_rag.errors import KnowledgeStoreUnavailableError, MalformedCandidateError
from helpdesk_rag.models import EmbeddingState
from helpdesk_rag.store import ChromaKnowledgeStore, InMemoryKnowledgeStore
from tests.conftest import DIMENSIONS, SAMPLE_EMBEDDING, make_item


class TestInMemoryKnowledgeStore:
    def test_insert_and_newest_first(self, memory_store):
        memory_store.insert(make_item("Old", "a", item_id="old", minutes=0))
        memory_store.insert(make_item("New", "b", item_id="new", minutes=10))
        assert [i.id for i in memory_store.all_items()] == ["new", "old"]

    def test_wrong_dimension_rejected(self, memory_store):
        with pytest.raises(MalformedCandidateError):
            memory_store.insert(make_item("Bad", "x", embedding=[0.1, 0.2]))

    def test_eligible_only_generated(self, memory_store):
        memory_store.insert(make_item("Embedded", "x", embedding=SAMPLE_EMBEDDING, item_id="e"))
        memory_store.insert(make_item("Plain", "y", item_id="p"))
        assert [i.id for i in memory_store.find_eligible_for_semantic_search()] == ["e"]

    def test_text_filter_or_semantics_and_limit(self, memory_store):
        memory_store.insert(make_item("Refunds", "money back", item_id="r", minutes=1))
        memory_store.insert(make_item("Hours", "open late", item_id="h", minutes=2))
        memory_store.insert(make_item("Misc", "nothing here", item_id="m", minutes=3))

        assert [i.id for i in memory_store.find_by_text_filter(["refunds", "open"])] == ["h", "r"]
        assert [i.id for i in memory_store.find_by_text_filter(["refunds", "open"], limit=1)] == ["h"]
        assert memory_store.find_by_text_filter([]) == []

    def test_delete_by_id(self, memory_store):
        memory_store.insert(make_item("Gone", "x", item_id="g"))
        assert memory_store.delete_by_id("g") is True
        assert memory_store.delete_by_id("g") is False
        assert memory_store.all_items() == []


def _make_store(collection):
    with patch("helpdesk_rag.store.chromadb.PersistentClient") as mock_chroma:
        mock_chroma.return_value.get_or_create_collection.return_value = collection
        store = ChromaKnowledgeStore(index_path="/tmp/test_chroma", dimensions=DIMENSIONS)
    return store


class TestChromaKnowledgeStore:
    def test_all_items_parsed_newest_first(self, mock_chroma_collection):
        store = _make_store(mock_chroma_collection)
        items = store.all_items()
        assert [i.id for i in items] == ["newer", "older"]
        older = items[1]
        assert older.title == "Business Hours"
        assert older.tags == frozenset({"hours", "open"})
        assert older.embedding == SAMPLE_EMBEDDING
        assert items[0].embedding is None
        assert items[0].embedding_state == EmbeddingState.ABSENT

    def test_eligible_queries_generated_state(self, mock_chroma_collection):
        store = _make_store(mock_chroma_collection)
        store.find_eligible_for_semantic_search()
        kwargs = mock_chroma_collection.get.call_args.kwargs
        assert kwargs["where"] == {"embedding_state": "generated"}

    def test_text_filter(self, mock_chroma_collection):
        store = _make_store(mock_chroma_collection)
        assert [i.id for i in store.find_by_text_filter(["refunds"])] == ["newer"]

    def test_insert_uses_zero_vector_without_embedding(self):
        collection = MagicMock()
        store = _make_store(collection)
        store.insert(make_item("Plain", "body", item_id="p"))
        kwargs = collection.upsert.call_args.kwargs
        assert kwargs["ids"] == ["p"]
        assert kwargs["embeddings"] == [[0.0] * DIMENSIONS]
        assert kwargs["metadatas"][0]["embedding_state"] == "absent"

    def test_insert_rejects_wrong_dimensions(self):
        store = _make_store(MagicMock())
        with pytest.raises(MalformedCandidateError):
            store.insert(make_item("Bad", "x", embedding=[1.0]))

    def test_read_failure_is_hard_failure(self):
        collection = MagicMock()
        collection.get.side_effect = RuntimeError("disk gone")
        store = _make_store(collection)
        with pytest.raises(KnowledgeStoreUnavailableError):
            store.find_by_text_filter(["hours"])

    def test_delete_missing_returns_false(self):
        collection = MagicMock()
        collection.get.return_value = {"ids": []}
        store = _make_store(collection)
        assert store.delete_by_id("nope") is False
        collection.delete.assert_not_called()

    def test_delete_existing(self):
        collection = MagicMock()
        collection.get.return_value = {"ids": ["x"]}
        store = _make_store(collection)
        assert store.delete_by_id("x") is True
        collection.delete.assert_called_once_with(ids=["x"])
