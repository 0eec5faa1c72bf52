"""
CRM RAG Module
==============

Retrieval-augmented answering over body shop CRM records.

Record types:
- Customers: contact details, cumulative spend, visits
- Quotes: vehicle, line items, status
- Work history: jobs, technicians, parts, costs, ratings

Architecture:
- ChromaDB for vector storage
- OpenAI text-embedding-3-small for embeddings
- Claude (or GPT fallback) for grounded answers
"""

from .context import ContextAssembler, NO_CONTEXT_MESSAGE, mean_score_confidence
from .embedder import RAGEmbedder
from .engine import RAGEngine, QueryStage, NO_ANSWER_MESSAGE
from .ingestion import RAGIngestion
from .normalizer import RecordNormalizer
from .retriever import RAGRetriever
from .vector_store import VectorIndex
from .models import (
    ConversationalRAGQuery,
    ConversationMessage,
    DataSource,
    DataType,
    IngestionRequest,
    IngestionSummary,
    RAGOptions,
    RAGQuery,
    RAGResponse,
    SearchResult,
    VectorDocument,
)

__all__ = [
    "ContextAssembler",
    "NO_CONTEXT_MESSAGE",
    "mean_score_confidence",
    "RAGEmbedder",
    "RAGEngine",
    "QueryStage",
    "NO_ANSWER_MESSAGE",
    "RAGIngestion",
    "RecordNormalizer",
    "RAGRetriever",
    "VectorIndex",
    "ConversationalRAGQuery",
    "ConversationMessage",
    "DataSource",
    "DataType",
    "IngestionRequest",
    "IngestionSummary",
    "RAGOptions",
    "RAGQuery",
    "RAGResponse",
    "SearchResult",
    "VectorDocument",
]
