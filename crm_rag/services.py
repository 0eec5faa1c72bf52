"""
CRM RAG Services
================

Explicit wiring of the retrieval pipeline. One container is built per
process (API lifespan or CLI command) and handed to whoever needs it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .ai.llm_client import LLMClient, get_llm_client
from .config import Settings, get_settings
from .connectors.crm_connector import CRMConnector
from .rag.context import ContextAssembler
from .rag.embedder import RAGEmbedder
from .rag.engine import RAGEngine
from .rag.ingestion import RAGIngestion
from .rag.retriever import RAGRetriever
from .rag.vector_store import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything the API and CLI talk to."""
    settings: Settings
    index: VectorIndex
    embedder: RAGEmbedder
    retriever: RAGRetriever
    ingestion: RAGIngestion
    engine: RAGEngine


def build_services(
    settings: Optional[Settings] = None,
    index: Optional[VectorIndex] = None,
    embedder: Optional[RAGEmbedder] = None,
    llm: Optional[LLMClient] = None,
    initialize: bool = True,
) -> ServiceContainer:
    """
    Build the service graph from settings.

    Any collaborator can be passed in to replace the configured one.

    Raises:
        ValueError: If a required API key is missing
        IndexNotReadyError: If the vector index cannot be initialized
    """
    settings = settings or get_settings()

    index = index or VectorIndex(settings.vector_store)
    if initialize and not index.is_ready:
        index.initialize()

    embedder = embedder or RAGEmbedder(settings.embedding)
    llm = llm or get_llm_client(settings.generation)

    retriever = RAGRetriever(embedder, index)
    ingestion = RAGIngestion(
        embedder,
        index,
        connector=CRMConnector(request_timeout=settings.connector.request_timeout),
    )
    engine = RAGEngine(retriever, llm, assembler=ContextAssembler())

    logger.info(
        f"Services ready: collection={index.collection_name} "
        f"embeddings={embedder.model} llm={llm.model}"
    )

    return ServiceContainer(
        settings=settings,
        index=index,
        embedder=embedder,
        retriever=retriever,
        ingestion=ingestion,
        engine=engine,
    )
