"""
CRM RAG CLI
===========

Command-line interface for the CRM knowledge base.

Usage:
    python -m crm_rag.cli serve                          # Start the API server
    python -m crm_rag.cli ingest data/customers.json --type customer
    python -m crm_rag.cli ingest data/exports/ --type work_history
    python -m crm_rag.cli query "Who are our VIP customers?" --min-score 0.3
    python -m crm_rag.cli status                         # Collection status
    python -m crm_rag.cli reset --yes                    # Drop all documents
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .ai.llm_client import get_llm_client
from .config import Settings, get_settings
from .connectors.models import DataSource, DataSourceType
from .errors import RAGError
from .logging_config import setup_logging
from .rag.embedder import RAGEmbedder
from .rag.engine import RAGEngine
from .rag.ingestion import RAGIngestion
from .rag.models import DEFAULT_MIN_SCORE, DEFAULT_TOP_K, RAGOptions, RAGQuery, parse_data_type
from .rag.retriever import RAGRetriever
from .rag.vector_store import VectorIndex

logger = logging.getLogger(__name__)

FILE_TYPES = {
    ".json": DataSourceType.JSON,
    ".csv": DataSourceType.CSV,
    ".xlsx": DataSourceType.EXCEL,
    ".xls": DataSourceType.EXCEL,
}


def open_index(settings: Settings) -> VectorIndex:
    index = VectorIndex(settings.vector_store)
    index.initialize()
    return index


def serve(settings: Settings, host: Optional[str] = None, port: Optional[int] = None) -> bool:
    """Start the API server (blocks)."""
    from .api.main import run

    if host:
        settings.server.host = host
    if port:
        settings.server.port = port
    run(settings)
    return True


def ingest(settings: Settings, path: str, data_type: str) -> bool:
    """Ingest a JSON/CSV file or every such file in a directory."""
    data_type = parse_data_type(data_type)
    target = Path(path)
    ingestion = RAGIngestion(RAGEmbedder(settings.embedding), open_index(settings))

    if target.is_dir():
        count = ingestion.ingest_directory(str(target), data_type)
    else:
        source_type = FILE_TYPES.get(target.suffix.lower())
        if source_type is None:
            logger.error(f"Unsupported file type: {target.suffix or target.name}")
            return False
        count = ingestion.ingest_from_source(DataSource(type=source_type, path=str(target)), data_type)

    stats = ingestion.stats
    print(f"""
Ingestion complete:
- Records ingested: {count}
- Embedding tokens: {stats['embedding_tokens']}
- Estimated cost: ${stats['embedding_cost_usd']:.4f}
""")
    return True


def query(settings: Settings, text: str, top_k: int, min_score: float) -> bool:
    """Ask a question and print the grounded answer with its sources."""
    index = open_index(settings)
    retriever = RAGRetriever(RAGEmbedder(settings.embedding), index)
    engine = RAGEngine(retriever, get_llm_client(settings.generation))

    response = asyncio.run(engine.query(RAGQuery(
        query=text,
        options=RAGOptions(top_k=top_k, min_score=min_score),
    )))

    print(f"\n{'='*60}")
    print(f"Query: {text}")
    print(f"Confidence: {response.confidence:.3f}")
    print('='*60)
    print(response.answer)

    print(f"\nSources ({len(response.sources)}):")
    for i, source in enumerate(response.sources, 1):
        print(f"  [{i}] {source.metadata.get('type')}/{source.metadata.get('id')} score={source.score:.3f}")

    return True


def show_status(settings: Settings) -> bool:
    status = open_index(settings).status()
    print(f"Collection: {status['collectionName']}")
    print(f"Documents:  {status['totalDocuments']}")
    return True


def reset(settings: Settings, confirmed: bool) -> bool:
    """Drop every document of the collection."""
    if not confirmed:
        logger.error("Refusing to reset without --yes")
        return False

    index = open_index(settings)
    index.reset()
    print(f"Collection '{index.collection_name}' reset")
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CRM knowledge base CLI")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", help="Bind address (default: HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default: PORT)")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest a file or directory")
    ingest_parser.add_argument("path", help="JSON/CSV file or directory")
    ingest_parser.add_argument(
        "--type", dest="data_type", required=True,
        choices=["customer", "quote", "work_history"], help="Record type",
    )

    query_parser = subparsers.add_parser("query", help="Ask a question")
    query_parser.add_argument("text", help="Question")
    query_parser.add_argument("--top-k", type=int, default=DEFAULT_TOP_K, help="Candidates to retrieve")
    query_parser.add_argument("--min-score", type=float, default=DEFAULT_MIN_SCORE, help="Minimum relevance")

    subparsers.add_parser("status", help="Show collection status")

    reset_parser = subparsers.add_parser("reset", help="Drop all documents")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm the reset")

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    settings = get_settings()
    if args.command != "serve":
        setup_logging(settings.logging)

    try:
        if args.command == "serve":
            success = serve(settings, args.host, args.port)
        elif args.command == "ingest":
            success = ingest(settings, args.path, args.data_type)
        elif args.command == "query":
            success = query(settings, args.text, args.top_k, args.min_score)
        elif args.command == "status":
            success = show_status(settings)
        else:
            success = reset(settings, args.yes)
    except (RAGError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        success = False

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
