"""
RAG Retriever
=============

"Give me the k nearest" primitive:
1. Embed the query once
2. Ask the vector index for the top-k neighbours

No score threshold is applied here; grounding decides what is good enough.
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import IndexNotReadyError, ValidationError
from .embedder import RAGEmbedder
from .models import DEFAULT_TOP_K, SearchResult
from .vector_store import VectorIndex

logger = logging.getLogger(__name__)


class RAGRetriever:
    """Retrieves the most similar CRM documents for a query."""

    def __init__(self, embedder: RAGEmbedder, index: VectorIndex):
        self.embedder = embedder
        self.index = index

    def search(
        self,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        where: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:
        """
        Search for the documents closest to ``query``.

        Args:
            query: Search query text
            top_k: Number of neighbours to request
            where: Optional metadata filter (e.g. {"type": "quote"})

        Returns:
            List of SearchResult ordered by descending score

        Raises:
            IndexNotReadyError: Before the index is initialized (checked
                before any embedding call)
        """
        if not self.index.is_ready:
            raise IndexNotReadyError("Vector index is not initialized")
        if top_k < 1:
            raise ValidationError(f"top_k must be positive, got {top_k}")

        query_embedding = self.embedder.embed_query(query)
        results = self.index.query(query_embedding, k=top_k, where=where)

        # sorted() is stable: equal scores keep the index's own order
        results = sorted(results, key=lambda r: r.score, reverse=True)

        logger.info(
            f"RAG search returned {len(results)} results for query: {query[:50]}...",
            extra={"top_k": top_k, "count": len(results)},
        )
        return results
