"""
Tests for the ChromaDB vector index.

Runs against an in-memory Chroma client; every test gets its own collection.
"""

import uuid

import pytest

from conftest import hash_embedding

from crm_rag.config import VectorStoreConfig
from crm_rag.errors import IndexNotReadyError, IndexResetError, ValidationError
from crm_rag.rag.models import VectorDocument
from crm_rag.rag.vector_store import VectorIndex


def make_document(doc_id="customer_C1", content="Customer Tanaka, VIP", data_type="customer", **metadata):
    meta = {"type": data_type, "id": doc_id.split("_", 1)[-1]}
    meta.update(metadata)
    return VectorDocument(id=doc_id, content=content, metadata=meta, embedding=hash_embedding(content))


class TestLifecycle:

    def test_not_ready_before_initialize(self, chroma_client):
        index = VectorIndex(
            VectorStoreConfig(path=None, host=None, collection_name=f"test_{uuid.uuid4().hex[:12]}"),
            client=chroma_client,
        )
        assert index.is_ready is False
        with pytest.raises(IndexNotReadyError):
            index.count()
        with pytest.raises(IndexNotReadyError):
            index.query(hash_embedding("anything"))

    def test_initialize_is_idempotent(self, chroma_index):
        chroma_index.upsert([make_document()])
        chroma_index.initialize()
        assert chroma_index.is_ready is True
        assert chroma_index.count() == 1

    def test_status(self, chroma_index):
        chroma_index.upsert([make_document()])
        assert chroma_index.status() == {
            "collectionName": chroma_index.collection_name,
            "totalDocuments": 1,
        }


class TestUpsert:

    def test_same_id_overwrites(self, chroma_index):
        chroma_index.upsert([make_document(content="Customer Tanaka")])
        chroma_index.upsert([make_document(content="Customer Tanaka, updated")])

        assert chroma_index.count() == 1
        assert chroma_index.list_documents()[0].content == "Customer Tanaka, updated"

    def test_requires_embeddings(self, chroma_index):
        document = make_document()
        document.embedding = None
        with pytest.raises(ValidationError):
            chroma_index.upsert([document])

    def test_empty_batch(self, chroma_index):
        assert chroma_index.upsert([]) == 0

    def test_stale_epoch_rejected(self, chroma_index):
        epoch = chroma_index.epoch
        chroma_index.reset()

        with pytest.raises(IndexResetError):
            chroma_index.upsert([make_document()], expected_epoch=epoch)
        assert chroma_index.count() == 0

    def test_current_epoch_accepted(self, chroma_index):
        assert chroma_index.upsert([make_document()], expected_epoch=chroma_index.epoch) == 1


class TestQuery:

    def test_empty_collection(self, chroma_index):
        assert chroma_index.query(hash_embedding("VIP customers")) == []

    def test_exact_match_scores_highest(self, chroma_index):
        chroma_index.upsert([
            make_document("customer_C1", "Customer Tanaka, VIP"),
            make_document("customer_C2", "Customer Sato, new"),
            make_document("quote_Q1", "Quote for bumper repair", data_type="quote"),
        ])

        results = chroma_index.query(hash_embedding("Customer Tanaka, VIP"), k=3)

        assert results[0].document.id == "customer_C1"
        assert results[0].score > 0.99
        assert all(0.0 <= r.score <= 1.0 for r in results)
        assert results[0].document.metadata["type"] == "customer"

    def test_k_larger_than_collection(self, chroma_index):
        chroma_index.upsert([make_document()])
        assert len(chroma_index.query(hash_embedding("x"), k=10)) == 1

    def test_filter_by_type(self, chroma_index):
        chroma_index.upsert([
            make_document("customer_C1", "Customer Tanaka"),
            make_document("quote_Q1", "Quote for Tanaka", data_type="quote"),
        ])

        results = chroma_index.query(hash_embedding("Tanaka"), k=5, where={"type": "quote"})

        assert [r.document.id for r in results] == ["quote_Q1"]


class TestListing:

    def test_paging_and_filter(self, chroma_index):
        chroma_index.upsert([make_document(f"customer_C{i}", f"Customer {i}") for i in range(5)])
        chroma_index.upsert([make_document("quote_Q1", "Quote", data_type="quote")])

        assert len(chroma_index.list_documents(limit=2)) == 2
        assert len(chroma_index.list_documents(limit=10, offset=4)) == 2
        quotes = chroma_index.list_documents(where={"type": "quote"})
        assert [doc.id for doc in quotes] == ["quote_Q1"]


class TestReset:

    def test_reset_empties_collection(self, chroma_index):
        chroma_index.upsert([make_document("customer_C1"), make_document("customer_C2", "Customer Sato")])
        epoch = chroma_index.epoch

        chroma_index.reset()

        assert chroma_index.is_ready is True
        assert chroma_index.count() == 0
        assert chroma_index.epoch == epoch + 1

    def test_index_usable_after_reset(self, chroma_index):
        chroma_index.reset()
        chroma_index.upsert([make_document()])
        assert chroma_index.count() == 1
