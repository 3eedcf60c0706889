"""Knowledge ingestion: chunking, tagging and embedding documents into a store."""

from pathlib import Path

from loguru import logger
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from helpdesk_rag.chunker import chunk
from helpdesk_rag.config import Settings
from helpdesk_rag.embeddings import EmbeddingGateway, build_embedding_excerpt
from helpdesk_rag.keyword import extract_keywords
from helpdesk_rag.models import EmbeddingState, KnowledgeItem
from helpdesk_rag.store import KnowledgeStore

SUPPORTED_SUFFIXES = (".txt", ".md", ".pdf")


def read_pdf_text(path: Path) -> str:
    """Text of every page joined by blank lines; raises ValueError for unreadable files."""
    try:
        reader = PdfReader(str(path))
        pages = [page.extract_text() or "" for page in reader.pages]
    except PdfReadError as e:
        raise ValueError(f"Cannot read PDF {path.name}: {e}") from e
    return "\n\n".join(text.strip() for text in pages if text.strip())


def read_document(path: Path) -> str:
    if path.suffix.lower() == ".pdf":
        return read_pdf_text(path)
    return path.read_text(encoding="utf-8")


class KnowledgeIndexer:
    """Turns raw documents into knowledge items and inserts them into a store."""

    def __init__(
        self,
        store: KnowledgeStore,
        gateway: EmbeddingGateway,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        max_embedding_chars: int = 8000,
    ):
        self.store = store
        self.gateway = gateway
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_embedding_chars = max_embedding_chars

    @classmethod
    def from_settings(cls, settings: Settings, store: KnowledgeStore, gateway: EmbeddingGateway) -> "KnowledgeIndexer":
        return cls(
            store,
            gateway,
            chunk_size=settings.chunking.max_size,
            chunk_overlap=settings.chunking.overlap,
            max_embedding_chars=settings.max_embedding_input_chars,
        )

    async def _embed(self, title: str, body: str) -> tuple[list[float] | None, EmbeddingState]:
        if not self.gateway.configured:
            return None, EmbeddingState.ABSENT
        excerpt = build_embedding_excerpt(title, body, self.max_embedding_chars)
        result = await self.gateway.embed(excerpt, use_cache=False)
        if result.ok:
            return result.vector, EmbeddingState.GENERATED
        logger.warning(f"Embedding failed for {title!r} ({result.error}); item stays keyword-only")
        return None, EmbeddingState.FAILED

    async def add_document(self, title: str, body: str, tags: list[str] | None = None) -> list[KnowledgeItem]:
        """Index one document, splitting long bodies into parts."""
        title = title.strip()
        if not title or not body.strip():
            raise ValueError("Title and content are required")

        segments = chunk(body, self.chunk_size, self.chunk_overlap)
        items = []
        for i, segment in enumerate(segments, 1):
            part_title = title if len(segments) == 1 else f"{title} (part {i}/{len(segments)})"
            keywords = set(tags or []) | set(extract_keywords(f"{title} {segment}"))
            embedding, state = await self._embed(part_title, segment)
            item = KnowledgeItem(
                title=part_title,
                body=segment,
                tags=keywords,
                embedding=embedding,
                embedding_state=state,
            )
            self.store.insert(item)
            items.append(item)

        logger.info(f"Indexed {title!r} as {len(items)} item(s)")
        return items

    async def index_directory(self, data_dir: Path) -> int:
        """Index every .txt/.md/.pdf file in a directory; the file stem is the title."""
        data_dir = Path(data_dir)
        count = 0
        for path in sorted(data_dir.iterdir()):
            if not path.is_file() or path.suffix.lower() not in SUPPORTED_SUFFIXES:
                continue
            text = read_document(path)
            if not text.strip():
                logger.warning(f"Skipping {path.name}: no extractable text")
                continue
            items = await self.add_document(path.stem.replace("_", " "), text)
            count += len(items)
        return count
