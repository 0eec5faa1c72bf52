"""
Shared fakes for the CRM RAG tests.

The fakes stand in for the embedding provider, the generation provider and
the vector index so pipeline tests run without network access.
"""

import hashlib
import math
import re
import uuid
from typing import Dict, List, Optional

import chromadb
import pytest
from chromadb.config import Settings as ChromaSettings

from crm_rag.ai.llm_client import LLMProvider, LLMResponse
from crm_rag.config import VectorStoreConfig
from crm_rag.errors import UpstreamServiceError
from crm_rag.rag.embedder import EmbeddingResult
from crm_rag.rag.models import SearchResult, VectorDocument
from crm_rag.rag.vector_store import VectorIndex

DIMENSIONS = 16


def hash_embedding(text: str, dimensions: int = DIMENSIONS) -> List[float]:
    """Bag-of-words hashed into a small unit vector."""
    vector = [0.0] * dimensions
    for token in re.findall(r"\w+", text.lower()):
        bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % dimensions
        vector[bucket] += 1.0
    norm = math.sqrt(sum(v * v for v in vector)) or 1.0
    return [v / norm for v in vector]


class FakeEmbedder:
    """Deterministic embedder recording every call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.model = "fake-embedding"
        self.batch_calls: List[List[str]] = []
        self.query_calls: List[str] = []
        self.total_tokens = 0
        self.estimated_cost = 0.0

    def embed_batch(self, texts: List[str]) -> List[EmbeddingResult]:
        if self.fail:
            raise UpstreamServiceError("embedding provider down", provider="fake")
        self.batch_calls.append(list(texts))
        self.total_tokens += sum(len(t.split()) for t in texts)
        return [EmbeddingResult(embedding=hash_embedding(t), token_count=len(t.split()), model=self.model) for t in texts]

    def embed_query(self, query: str) -> List[float]:
        if self.fail:
            raise UpstreamServiceError("embedding provider down", provider="fake")
        self.query_calls.append(query)
        return hash_embedding(query)


class FakeIndex:
    """In-memory index returning scripted results for queries."""

    def __init__(self, results: Optional[List[SearchResult]] = None, ready: bool = True):
        self.results = results or []
        self.ready = ready
        self.documents: Dict[str, VectorDocument] = {}
        self.upsert_calls = 0
        self.query_calls = []
        self.epoch = 0
        self.collection_name = "fake_collection"

    @property
    def is_ready(self) -> bool:
        return self.ready

    def upsert(self, documents, expected_epoch=None):
        self.upsert_calls += 1
        for doc in documents:
            self.documents[doc.id] = doc
        return len(documents)

    def query(self, embedding, k=5, where=None):
        self.query_calls.append({"k": k, "where": where})
        return list(self.results[:k])

    def count(self):
        return len(self.documents)


class FakeLLM:
    """Generation client returning a canned answer and recording prompts."""

    def __init__(self, content: Optional[str] = "Canned answer.", error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.model = "fake-llm"
        self.calls: List[Dict] = []

    async def generate(self, prompt, system=None, history=None, max_tokens=None, temperature=None):
        self.calls.append({"prompt": prompt, "system": system, "history": history})
        if self.error:
            raise self.error
        return LLMResponse(
            content=self.content,
            model=self.model,
            provider=LLMProvider.ANTHROPIC,
            tokens_input=10,
            tokens_output=5,
            cost_usd=0.0,
        )


def make_result(doc_id: str, score: float, content: Optional[str] = None, data_type: str = "customer") -> SearchResult:
    return SearchResult(
        document=VectorDocument(
            id=f"{data_type}_{doc_id}",
            content=content or f"Record {doc_id}",
            metadata={"type": data_type, "id": doc_id},
        ),
        score=score,
    )


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture(scope="session")
def chroma_client():
    return chromadb.EphemeralClient(settings=ChromaSettings(anonymized_telemetry=False, allow_reset=False))


@pytest.fixture
def chroma_index(chroma_client):
    """Initialized index on a fresh in-memory collection."""
    config = VectorStoreConfig(path=None, host=None, collection_name=f"test_{uuid.uuid4().hex[:12]}")
    index = VectorIndex(config, client=chroma_client)
    index.initialize()
    return index
