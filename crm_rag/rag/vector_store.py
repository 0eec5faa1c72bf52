"""
ChromaDB Vector Index
=====================

Thin adapter over a ChromaDB collection: upsert, nearest-neighbour query,
count, paged listing and reset-all.

Writes are keyed by document id (upsert), so re-ingesting a record replaces
its previous representation. Every reset bumps an epoch counter; a write that
was prepared under an older epoch is refused instead of resurrecting data
into the fresh collection.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

import chromadb
from chromadb.config import Settings as ChromaSettings

from ..config import VectorStoreConfig
from ..errors import IndexNotReadyError, IndexResetError, ResetError, ValidationError
from .models import SearchResult, VectorDocument

logger = logging.getLogger(__name__)


def distance_to_score(distance: Optional[float]) -> float:
    """Map a distance to a [0, 1] similarity; 0 distance -> 1.0."""
    if distance is None:
        return 0.0
    return 1.0 / (1.0 + max(distance, 0.0))


def build_where(filters: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Chroma wants a single-key where clause; combine several with $and."""
    if not filters:
        return None
    if len(filters) == 1 or any(key.startswith("$") for key in filters):
        return dict(filters)
    return {"$and": [{key: value} for key, value in filters.items()]}


class VectorIndex:
    """ChromaDB collection wrapper for CRM documents."""

    COLLECTION_DESCRIPTION = "Body shop CRM records (customers, quotes, work history)"

    def __init__(
        self,
        config: Optional[VectorStoreConfig] = None,
        client: Optional[Any] = None,
    ):
        self.config = config or VectorStoreConfig()
        self.collection_name = self.config.collection_name
        self._client = client
        self._collection = None
        self._epoch = 0
        self._lock = threading.Lock()

    def _create_client(self):
        settings = ChromaSettings(anonymized_telemetry=False, allow_reset=False)
        if self.config.host:
            logger.info(f"Connecting to Chroma server at {self.config.host}:{self.config.port}")
            return chromadb.HttpClient(host=self.config.host, port=self.config.port, settings=settings)
        if self.config.path:
            logger.info(f"Opening persistent Chroma store at {self.config.path}")
            return chromadb.PersistentClient(path=self.config.path, settings=settings)
        return chromadb.EphemeralClient(settings=settings)

    @property
    def client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    @property
    def is_ready(self) -> bool:
        return self._collection is not None

    @property
    def epoch(self) -> int:
        return self._epoch

    def initialize(self) -> None:
        """Get or create the collection. Safe to call more than once."""
        try:
            self._collection = self.client.get_or_create_collection(
                name=self.collection_name,
                metadata={"description": self.COLLECTION_DESCRIPTION},
                # vectors always come from RAGEmbedder
                embedding_function=None,
            )
        except Exception as e:
            logger.error(f"Failed to initialize collection '{self.collection_name}': {e}")
            raise IndexNotReadyError(f"Could not initialize collection '{self.collection_name}'") from e

        logger.info(f"Collection '{self.collection_name}' initialized")

    def _require_collection(self):
        if self._collection is None:
            raise IndexNotReadyError(
                f"Collection '{self.collection_name}' is not initialized; call initialize() first"
            )
        return self._collection

    def upsert(self, documents: List[VectorDocument], expected_epoch: Optional[int] = None) -> int:
        """
        Write documents with their embeddings, replacing any with the same id.

        Args:
            documents: Documents carrying an embedding each
            expected_epoch: Epoch observed when the write was prepared

        Returns:
            Number of documents written
        """
        collection = self._require_collection()
        if not documents:
            return 0

        missing = [doc.id for doc in documents if doc.embedding is None]
        if missing:
            raise ValidationError(f"Documents without embedding: {', '.join(missing[:5])}")

        with self._lock:
            if expected_epoch is not None and expected_epoch != self._epoch:
                raise IndexResetError(expected_epoch, self._epoch)

            collection.upsert(
                ids=[doc.id for doc in documents],
                embeddings=[doc.embedding for doc in documents],
                documents=[doc.content for doc in documents],
                metadatas=[doc.metadata for doc in documents],
            )

        logger.info(f"Upserted {len(documents)} documents", extra={"count": len(documents)})
        return len(documents)

    def query(
        self,
        embedding: List[float],
        k: int = 5,
        where: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:
        """Return up to ``k`` nearest documents in the index's native order."""
        collection = self._require_collection()

        available = collection.count()
        if available == 0:
            return []

        results = collection.query(
            query_embeddings=[embedding],
            n_results=min(k, available),
            where=build_where(where),
            include=["documents", "metadatas", "distances"],
        )

        ids = (results.get("ids") or [[]])[0]
        documents = (results.get("documents") or [[]])[0] or []
        metadatas = (results.get("metadatas") or [[]])[0] or []
        distances = (results.get("distances") or [[]])[0] or []

        search_results = []
        for i, doc_id in enumerate(ids):
            distance = distances[i] if i < len(distances) else None
            search_results.append(SearchResult(
                document=VectorDocument(
                    id=doc_id,
                    content=documents[i] if i < len(documents) and documents[i] else "",
                    metadata=dict(metadatas[i] or {}) if i < len(metadatas) else {},
                ),
                score=distance_to_score(distance),
                distance=distance,
            ))

        return search_results

    def count(self) -> int:
        return self._require_collection().count()

    def list_documents(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        where: Optional[Dict[str, Any]] = None,
    ) -> List[VectorDocument]:
        collection = self._require_collection()
        results = collection.get(
            limit=limit,
            offset=offset,
            where=build_where(where),
            include=["documents", "metadatas"],
        )

        ids = results.get("ids") or []
        documents = results.get("documents") or []
        metadatas = results.get("metadatas") or []

        return [
            VectorDocument(
                id=doc_id,
                content=documents[i] if i < len(documents) and documents[i] else "",
                metadata=dict(metadatas[i] or {}) if i < len(metadatas) else {},
            )
            for i, doc_id in enumerate(ids)
        ]

    def status(self) -> Dict[str, Any]:
        return {
            "collectionName": self.collection_name,
            "totalDocuments": self.count(),
        }

    def reset(self) -> None:
        """
        Drop every document and recreate an empty collection.

        A failure leaves the index marked not-ready; it is not retried.
        """
        with self._lock:
            self._epoch += 1
            self._collection = None
            try:
                # get_or_create first: deleting a missing collection raises
                self.client.get_or_create_collection(name=self.collection_name, embedding_function=None)
                self.client.delete_collection(name=self.collection_name)
                self.initialize()
            except Exception as e:
                logger.error(f"Reset of collection '{self.collection_name}' failed: {e}")
                raise ResetError(f"Reset of collection '{self.collection_name}' failed") from e

        logger.info(f"Collection '{self.collection_name}' reset (epoch {self._epoch})")
