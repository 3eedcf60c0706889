"""Shared fixtures for all test modules."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from helpdesk_rag.models import (
    ConversationTurn,
    EmbeddingState,
    KnowledgeItem,
    Role,
    ScoredItem,
    ScoreMethod,
)
from helpdesk_rag.store import InMemoryKnowledgeStore

DIMENSIONS = 4
SAMPLE_EMBEDDING = [0.1, 0.2, 0.3, 0.4]
BASE_TIME = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def make_item(
    title: str,
    body: str,
    embedding: list[float] | None = None,
    tags: list[str] | None = None,
    minutes: int = 0,
    item_id: str | None = None,
) -> KnowledgeItem:
    """Knowledge item whose state follows from whether an embedding is given."""
    kwargs = {}
    if item_id:
        kwargs["id"] = item_id
    return KnowledgeItem(
        title=title,
        body=body,
        tags=tags or [],
        embedding=embedding,
        embedding_state=EmbeddingState.GENERATED if embedding else EmbeddingState.ABSENT,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **kwargs,
    )


def scored(item: KnowledgeItem, score: float, method: ScoreMethod = ScoreMethod.SEMANTIC) -> ScoredItem:
    return ScoredItem(item=item, score=score, method=method)


class FakeEmbeddingProvider:
    """Returns canned vectors keyed by text, or a default vector."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, default: list[float] | None = None):
        self.vectors = vectors or {}
        self.default = default if default is not None else SAMPLE_EMBEDDING
        self.calls: list[str] = []

    async def embed_query(self, text: str) -> list[float]:
        self.calls.append(text)
        return self.vectors.get(text, self.default)

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_query(t) for t in texts]


@pytest.fixture
def sample_embedding():
    return SAMPLE_EMBEDDING.copy()


@pytest.fixture
def hours_item():
    return make_item(
        "Business Hours",
        "We are open 9am–5pm Monday to Friday.",
        item_id="hours",
    )


@pytest.fixture
def refund_items():
    return [
        make_item(
            "Shipping Times",
            "Orders ship in 2 days. Our refund policy is described on the refund page.",
            item_id="shipping",
            minutes=5,
        ),
        make_item(
            "Refund Policy",
            "Request a refund within 30 days. See our policy page for exceptions.",
            item_id="refund",
        ),
    ]


@pytest.fixture
def memory_store():
    return InMemoryKnowledgeStore(dimensions=DIMENSIONS)


@pytest.fixture
def sample_history():
    return [
        ConversationTurn(role=Role.USER, text="Do you ship abroad?"),
        ConversationTurn(role=Role.AGENT, text="Yes, to most countries."),
        ConversationTurn(role=Role.USER, text="How much does it cost?"),
        ConversationTurn(role=Role.AGENT, text="It depends on the destination."),
    ]


@pytest.fixture
def mock_openai_embeddings_client():
    """AsyncMock of AsyncOpenAI returning fake embeddings."""
    client = AsyncMock()
    embedding_obj = MagicMock()
    embedding_obj.embedding = SAMPLE_EMBEDDING
    response = MagicMock()
    response.data = [embedding_obj]
    client.embeddings.create = AsyncMock(return_value=response)
    return client


@pytest.fixture
def mock_chroma_collection():
    """MagicMock ChromaDB collection returning one embedded and one keyword-only record."""
    collection = MagicMock()
    collection.get = MagicMock(
        return_value={
            "ids": ["older", "newer"],
            "documents": ["We are open 9am to 5pm.", "Refunds take 5 days."],
            "metadatas": [
                {
                    "title": "Business Hours",
                    "tags": "hours,open",
                    "embedding_state": "generated",
                    "created_at": "2024-01-15T10:00:00+00:00",
                },
                {
                    "title": "Refunds",
                    "tags": "",
                    "embedding_state": "absent",
                    "created_at": "2024-02-01T10:00:00+00:00",
                },
            ],
            "embeddings": [SAMPLE_EMBEDDING, [0.0] * DIMENSIONS],
        }
    )
    return collection


def make_pdf(pages: list[str]) -> bytes:
    """Minimal PDF with one Helvetica text line per page."""
    n_pages = len(pages)
    kids = " ".join(f"{3 + 2 * i} 0 R" for i in range(n_pages))
    font_id = 3 + 2 * n_pages
    objects = [
        "<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {n_pages} >>",
    ]
    for i, text in enumerate(pages):
        content = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET"
        objects.append(
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents {4 + 2 * i} 0 R "
            f"/Resources << /Font << /F1 {font_id} 0 R >> >> >>"
        )
        objects.append(f"<< /Length {len(content)} >>\nstream\n{content}\nendstream")
    objects.append("<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>")

    out = b"%PDF-1.4\n"
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n{body}\nendobj\n".encode("latin-1")
    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n0000000000 65535 f \n".encode()
    out += "".join(f"{offset:010d} 00000 n \n" for offset in offsets).encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
    return out
