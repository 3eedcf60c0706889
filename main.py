#!/usr/bin/env python3
"""CLI entry point for the helpdesk knowledge assistant."""

import argparse
import asyncio
import sys
from pathlib import Path

from helpdesk_rag.config import Settings
from helpdesk_rag.embeddings import EmbeddingGateway
from helpdesk_rag.indexer import KnowledgeIndexer
from helpdesk_rag.log import setup_logging
from helpdesk_rag.rag_pipeline import RAGPipeline
from helpdesk_rag.store import ChromaKnowledgeStore


def _open_store(settings: Settings) -> ChromaKnowledgeStore:
    return ChromaKnowledgeStore(index_path=settings.index_path, dimensions=settings.embedding_dimensions)


async def index_command(settings: Settings, data_dir: Path) -> None:
    """Index .txt/.md/.pdf documents into the knowledge store."""
    print(f"Indexing knowledge documents from {data_dir}...")
    store = _open_store(settings)
    indexer = KnowledgeIndexer.from_settings(settings, store, EmbeddingGateway.from_settings(settings))
    count = await indexer.index_directory(data_dir)
    print(f"Indexed {count} knowledge items successfully.")


async def query_command(settings: Settings, query: str) -> None:
    """Answer a single question against the knowledge store."""
    store = _open_store(settings)
    pipeline = RAGPipeline.from_settings(settings, store)

    print(f"Querying: {query}\n")
    result = await pipeline.answer(query)
    print(f"Answer: {result.response_text}")
    print(f"\n--- Sources ---\nknowledge items: {len(result.used_knowledge_ids)}  web: {result.used_web_results}")
    print(f"retrieval: {pipeline.retriever.stats.snapshot()}")


def list_command(settings: Settings) -> None:
    """Print every knowledge item, newest first."""
    items = _open_store(settings).all_items()
    if not items:
        print("Knowledge base is empty.")
        return
    for item in items:
        print(f"{item.id}  {item.created_at:%Y-%m-%d %H:%M}  [{item.embedding_state.value}]  {item.title}")
    print(f"\n{len(items)} knowledge items.")


def delete_command(settings: Settings, item_id: str) -> bool:
    """Delete one knowledge item by id."""
    deleted = _open_store(settings).delete_by_id(item_id)
    print(f"Deleted {item_id}." if deleted else f"No knowledge item with id {item_id}.")
    return deleted


async def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Helpdesk knowledge assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--index-path",
        type=Path,
        default=None,
        help="ChromaDB index path (default: INDEX_PATH or .chroma_db)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    index_parser = subparsers.add_parser("index", help="Index knowledge documents")
    index_parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("data"),
        help="Directory with .txt/.md/.pdf documents (default: data)",
    )

    query_parser = subparsers.add_parser("query", help="Ask a question")
    query_parser.add_argument("query", type=str, help="Question text")
    query_parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help="Number of knowledge passages to retrieve (default: 3)",
    )
    query_parser.add_argument(
        "--no-web",
        action="store_true",
        help="Never supplement answers with web search",
    )

    subparsers.add_parser("list", help="List knowledge items")

    delete_parser = subparsers.add_parser("delete", help="Delete a knowledge item")
    delete_parser.add_argument("item_id", type=str, help="Knowledge item id (see `list`)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    settings = Settings.from_env()
    overrides = {}
    if args.index_path is not None:
        overrides["index_path"] = args.index_path
    if getattr(args, "top_k", None):
        overrides["retrieval_limit"] = args.top_k
    if getattr(args, "no_web", False):
        overrides["web_search_enabled"] = False
    if overrides:
        settings = settings.model_copy(update=overrides)
    setup_logging(settings.log_level)

    if args.command == "index":
        await index_command(settings, args.data_dir)
    elif args.command == "query":
        await query_command(settings, args.query)
    elif args.command == "list":
        list_command(settings)
    elif args.command == "delete":
        if not delete_command(settings, args.item_id):
            sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
