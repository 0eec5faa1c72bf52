"""
RAG Ingestion Pipeline
======================

Pipeline for ingesting CRM records into the vector index.

Flow:
1. Normalize records (id + canonical text + metadata)
2. Generate embeddings (one batched call)
3. Upsert to the index (one call, keyed by document id)

Multi-source ingestion reports a summary instead of failing fast: a broken
source is logged and counted, the remaining sources still run.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from ..connectors.crm_connector import CRMConnector
from ..errors import ValidationError
from .embedder import RAGEmbedder
from .models import (
    CRMRecord,
    DataSource,
    DataType,
    IngestionRequest,
    IngestionSummary,
    VectorDocument,
    parse_data_type,
    parse_record,
)
from .normalizer import RecordNormalizer, content_key
from .vector_store import VectorIndex

logger = logging.getLogger(__name__)

RawRecord = Union[CRMRecord, Dict[str, Any]]


class RAGIngestion:
    """
    Ingestion pipeline for the CRM knowledge base.

    Handles:
    - Record normalization
    - Embedding generation
    - Index upsert (same id + type overwrites)
    """

    def __init__(
        self,
        embedder: RAGEmbedder,
        index: VectorIndex,
        normalizer: Optional[RecordNormalizer] = None,
        connector: Optional[CRMConnector] = None,
    ):
        self.embedder = embedder
        self.index = index
        self.normalizer = normalizer or RecordNormalizer()
        self.connector = connector or CRMConnector()

        self._records_ingested = 0
        self._batches_written = 0
        self._sources_failed = 0

    def _write(self, documents: List[VectorDocument]) -> int:
        """Embed and upsert documents; nothing is written if embedding fails."""
        if not documents:
            return 0

        # Captured before the slow part so a concurrent reset is detected
        epoch = self.index.epoch

        embeddings = self.embedder.embed_batch([doc.content for doc in documents])
        for doc, emb_result in zip(documents, embeddings):
            doc.embedding = emb_result.embedding

        written = self.index.upsert(documents, expected_epoch=epoch)

        self._records_ingested += written
        self._batches_written += 1
        return written

    def ingest_record(self, record: RawRecord, data_type: Union[str, DataType]) -> int:
        """
        Ingest a single record.

        A record without an identifier is keyed by a hash of its rendered
        text.

        Returns:
            1 when written (failures propagate)
        """
        data_type = parse_data_type(data_type)
        record = parse_record(record, data_type)
        fallback_key = None
        if record.natural_key is None:
            fallback_key = content_key(self.normalizer.render(record))
        document = self.normalizer.to_document(record, data_type, fallback_key=fallback_key)
        written = self._write([document])

        logger.info(f"Ingested {document.id}", extra={"doc_id": document.id, "data_type": data_type.value})
        return written

    def ingest_records(self, records: Sequence[RawRecord], data_type: Union[str, DataType]) -> int:
        """
        Ingest a batch of records of one type.

        Records without an identifier fall back to their position in the batch.

        Returns:
            Number of documents written (0 for empty input, with no external call)
        """
        data_type = parse_data_type(data_type)
        if not records:
            return 0

        documents = [
            self.normalizer.to_document(record, data_type, fallback_key=i)
            for i, record in enumerate(records)
        ]

        ids = [doc.id for doc in documents]
        if len(set(ids)) != len(ids):
            duplicates = sorted({doc_id for doc_id in ids if ids.count(doc_id) > 1})
            raise ValidationError(f"Duplicate record identifiers in batch: {', '.join(duplicates[:5])}")

        written = self._write(documents)

        logger.info(
            f"Ingested {written} {data_type.value} records",
            extra={"data_type": data_type.value, "count": written},
        )
        return written

    def ingest_text(
        self,
        source: str,
        data_type: Union[str, DataType],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Ingest pre-rendered text (one document)."""
        data_type = parse_data_type(data_type)
        document = self.normalizer.document_from_text(source, data_type, metadata)
        written = self._write([document])

        logger.info(f"Ingested direct text as {document.id}", extra={"doc_id": document.id})
        return written

    def ingest_from_source(self, source: DataSource, data_type: Union[str, DataType]) -> int:
        """Load records from a data source and ingest them."""
        data_type = parse_data_type(data_type)
        logger.info(f"Ingesting {data_type.value} records from {source.describe()}")

        records = self.connector.load_data(source)
        if not records:
            logger.warning(f"No records found in {source.describe()}")
            return 0

        return self.ingest_records(records, data_type)

    def ingest_directory(self, directory_path: str, data_type: Union[str, DataType]) -> int:
        """Ingest every JSON/CSV file in a directory as records of one type."""
        data_type = parse_data_type(data_type)
        records = self.connector.load_directory(directory_path)
        if not records:
            logger.warning(f"No records found in directory {directory_path}")
            return 0

        return self.ingest_records(records, data_type)

    def ingest_bulk(self, requests: Sequence[IngestionRequest]) -> IngestionSummary:
        """
        Ingest several sources, isolating failures per source.

        Returns:
            IngestionSummary with totals per type; failed sources are
            counted in ``failed`` and excluded from ``total``
        """
        summary = IngestionSummary()

        for request in requests:
            try:
                count = self.ingest_from_source(request.source, request.data_type)
            except Exception as e:
                logger.error(
                    f"Source {request.source.describe()} ({request.data_type.value}) failed: {e}",
                    extra={"data_type": request.data_type.value},
                )
                summary.add_failure(request, e)
                self._sources_failed += 1
                continue
            summary.add_success(request.data_type, count)

        logger.info(
            f"Bulk ingestion finished: {summary.total} records, {summary.failed} failed sources",
            extra={"count": summary.total},
        )
        return summary

    @property
    def stats(self) -> Dict[str, Any]:
        """Get ingestion statistics."""
        return {
            "records_ingested": self._records_ingested,
            "batches_written": self._batches_written,
            "sources_failed": self._sources_failed,
            "embedding_tokens": self.embedder.total_tokens,
            "embedding_cost_usd": self.embedder.estimated_cost,
        }
