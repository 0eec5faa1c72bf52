"""
Tests for the ingestion pipeline.
"""

import json

import pytest

from conftest import FakeEmbedder, FakeIndex

from crm_rag.connectors.models import DataSource
from crm_rag.errors import IndexResetError, UpstreamServiceError, ValidationError
from crm_rag.rag.ingestion import RAGIngestion
from crm_rag.rag.models import IngestionRequest


def make_customers(count=3):
    return [
        {"customerId": f"C{i}", "name": f"Customer {i}", "totalSales": 10000 * i, "visitCount": i}
        for i in range(1, count + 1)
    ]


def write_json(path, records):
    path.write_text(json.dumps(records, ensure_ascii=False), encoding="utf-8")
    return str(path)


class ResettingEmbedder(FakeEmbedder):
    """Resets the index while the batch is being embedded."""

    def __init__(self, index):
        super().__init__()
        self.index = index

    def embed_batch(self, texts):
        results = super().embed_batch(texts)
        self.index.reset()
        return results


class TestIngestRecords:

    def setup_method(self):
        self.embedder = FakeEmbedder()
        self.index = FakeIndex()
        self.ingestion = RAGIngestion(self.embedder, self.index)

    def test_empty_input_makes_no_calls(self):
        assert self.ingestion.ingest_records([], "customer") == 0
        assert self.embedder.batch_calls == []
        assert self.index.upsert_calls == 0

    def test_one_embedding_call_and_one_write(self):
        count = self.ingestion.ingest_records(make_customers(3), "customer")

        assert count == 3
        assert len(self.embedder.batch_calls) == 1
        assert len(self.embedder.batch_calls[0]) == 3
        assert self.index.upsert_calls == 1
        assert sorted(self.index.documents) == ["customer_C1", "customer_C2", "customer_C3"]

    def test_documents_carry_embeddings(self):
        self.ingestion.ingest_records(make_customers(1), "customer")
        assert self.index.documents["customer_C1"].embedding is not None

    def test_position_used_when_identifier_missing(self):
        records = [{"name": "Walk-in A"}, {"name": "Walk-in B"}]
        self.ingestion.ingest_records(records, "customer")
        assert sorted(self.index.documents) == ["customer_0", "customer_1"]

    def test_duplicate_identifiers_rejected(self):
        records = make_customers(2) + make_customers(1)
        with pytest.raises(ValidationError):
            self.ingestion.ingest_records(records, "customer")
        assert self.embedder.batch_calls == []

    def test_invalid_record_aborts_batch(self):
        records = make_customers(2) + [{"customerId": "C9"}]
        with pytest.raises(ValidationError):
            self.ingestion.ingest_records(records, "customer")
        assert self.index.upsert_calls == 0

    def test_embedding_failure_writes_nothing(self):
        ingestion = RAGIngestion(FakeEmbedder(fail=True), self.index)
        with pytest.raises(UpstreamServiceError):
            ingestion.ingest_records(make_customers(2), "customer")
        assert self.index.documents == {}

    def test_ingest_record(self):
        assert self.ingestion.ingest_record(make_customers(1)[0], "customer") == 1
        assert "customer_C1" in self.index.documents

    def test_ingest_record_without_identifier_keyed_by_content(self):
        self.ingestion.ingest_record({"name": "Walk-in A"}, "customer")
        self.ingestion.ingest_record({"name": "Walk-in B"}, "customer")
        self.ingestion.ingest_record({"name": "Walk-in A"}, "customer")

        assert len(self.index.documents) == 2
        assert "customer_0" not in self.index.documents
        names = sorted(doc.metadata["name"] for doc in self.index.documents.values())
        assert names == ["Walk-in A", "Walk-in B"]

    def test_ingest_text(self):
        count = self.ingestion.ingest_text("Tanaka prefers weekend visits", "customer", {"id": "C1"})

        assert count == 1
        document = self.index.documents["customer_C1"]
        assert document.content == "Tanaka prefers weekend visits"
        assert document.metadata["type"] == "customer"

    def test_stats(self):
        self.ingestion.ingest_records(make_customers(2), "customer")
        stats = self.ingestion.stats
        assert stats["records_ingested"] == 2
        assert stats["batches_written"] == 1
        assert stats["embedding_tokens"] > 0


class TestIngestSources:

    def setup_method(self):
        self.embedder = FakeEmbedder()
        self.index = FakeIndex()
        self.ingestion = RAGIngestion(self.embedder, self.index)

    def test_from_json_source(self, tmp_path):
        path = write_json(tmp_path / "customers.json", make_customers(2))
        count = self.ingestion.ingest_from_source(DataSource(type="json", path=path), "customer")
        assert count == 2

    def test_empty_source(self, tmp_path):
        path = write_json(tmp_path / "empty.json", [])
        assert self.ingestion.ingest_from_source(DataSource(type="json", path=path), "customer") == 0
        assert self.embedder.batch_calls == []

    def test_directory(self, tmp_path):
        write_json(tmp_path / "a.json", make_customers(2))
        (tmp_path / "b.csv").write_text("customerId,name,totalSales\nC9,Ito,\"1,000\"\n", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

        count = self.ingestion.ingest_directory(str(tmp_path), "customer")

        assert count == 3
        assert "customer_C9" in self.index.documents

    def test_bulk_isolates_failed_source(self, tmp_path):
        """Second of three sources fails; the other two are still counted."""
        customers = write_json(tmp_path / "customers.json", make_customers(2))
        quotes = write_json(tmp_path / "quotes.json", [{
            "quoteId": "Q1", "customerId": "C1", "vehicleInfo": "Nissan Note",
            "status": "draft", "quoteDate": "2024-03-01",
        }])

        summary = self.ingestion.ingest_bulk([
            IngestionRequest(source=DataSource(type="json", path=customers), data_type="customer"),
            IngestionRequest(source=DataSource(type="json", path=str(tmp_path / "missing.json")), data_type="customer"),
            IngestionRequest(source=DataSource(type="json", path=quotes), data_type="quote"),
        ])

        assert summary.total == 3
        assert summary.by_type == {"customer": 2, "quote": 1}
        assert summary.failed == 1
        assert summary.errors[0]["category"] == "data_source"
        assert self.ingestion.stats["sources_failed"] == 1

    def test_bulk_excel_reported_unsupported(self, tmp_path):
        summary = self.ingestion.ingest_bulk([
            IngestionRequest(source=DataSource(type="excel", path=str(tmp_path / "crm.xlsx")), data_type="customer"),
        ])
        assert summary.total == 0
        assert summary.failed == 1


class TestIngestionWithChroma:

    def test_reingest_overwrites(self, chroma_index):
        ingestion = RAGIngestion(FakeEmbedder(), chroma_index)
        record = {"customerId": "C1", "name": "Tanaka", "totalSales": 500000, "visitCount": 3}

        ingestion.ingest_record(record, "customer")
        ingestion.ingest_record(record, "customer")

        assert chroma_index.count() == 1

    def test_reset_during_ingestion_rejected(self, chroma_index):
        ingestion = RAGIngestion(ResettingEmbedder(chroma_index), chroma_index)

        with pytest.raises(IndexResetError):
            ingestion.ingest_records(make_customers(2), "customer")
        assert chroma_index.count() == 0
