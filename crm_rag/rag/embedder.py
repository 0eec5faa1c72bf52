"""
RAG Embedder
============

Generates embeddings using OpenAI text-embedding-3-small.
1536 dimensions, optimized for cost/latency.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import openai

from ..config import EmbeddingConfig
from ..errors import UpstreamServiceError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingResult:
    """Result of embedding generation."""
    embedding: List[float]
    token_count: int
    model: str


class RAGEmbedder:
    """
    Generates embeddings using OpenAI text-embedding-3-small.

    Cost: ~$0.00002 per 1K tokens
    Max tokens: 8191

    Provider failures surface as UpstreamServiceError. No retry happens here
    beyond what the SDK client is configured for (0 by default).
    """

    def __init__(self, config: Optional[EmbeddingConfig] = None, api_key: Optional[str] = None):
        self.config = config or EmbeddingConfig()
        self.api_key = api_key or self.config.api_key
        if not self.api_key:
            raise ValueError("OpenAI API key required for embeddings")

        self.model = self.config.model
        self.dimensions = self.config.dimensions
        self._client = None
        self._total_tokens = 0
        self._total_requests = 0

    @property
    def client(self):
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=self.api_key,
                timeout=self.config.request_timeout,
                max_retries=self.config.max_retries,
            )
        return self._client

    def _create(self, inputs):
        try:
            return self.client.embeddings.create(
                model=self.model,
                input=inputs,
                dimensions=self.dimensions,
            )
        except openai.OpenAIError as e:
            logger.error(f"Embedding request failed: {e}")
            raise UpstreamServiceError(f"Embedding provider failed: {type(e).__name__}", provider="openai") from e

    def embed(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for a single text.

        Args:
            text: Text to embed (max 8191 tokens)

        Returns:
            EmbeddingResult with embedding vector
        """
        if not text.strip():
            raise ValidationError("Cannot embed empty text")

        response = self._create(text)

        embedding = response.data[0].embedding
        token_count = response.usage.total_tokens

        self._total_tokens += token_count
        self._total_requests += 1

        logger.debug(f"Embedded {token_count} tokens")

        return EmbeddingResult(
            embedding=embedding,
            token_count=token_count,
            model=self.model,
        )

    def embed_batch(self, texts: List[str]) -> List[EmbeddingResult]:
        """
        Generate embeddings for multiple texts, one API call per batch.

        Results are aligned with ``texts``; an empty text is rejected rather
        than skipped so indexes never shift.
        """
        for text in texts:
            if not text.strip():
                raise ValidationError("Cannot embed empty text")

        batch_size = self.config.batch_size
        results = []

        for i in range(0, len(texts), batch_size):
            batch = texts[i:i + batch_size]
            response = self._create(batch)

            if len(response.data) != len(batch):
                raise UpstreamServiceError(
                    f"Embedding provider returned {len(response.data)} vectors for {len(batch)} texts",
                    provider="openai",
                )

            for data in sorted(response.data, key=lambda d: d.index):
                results.append(EmbeddingResult(
                    embedding=data.embedding,
                    token_count=response.usage.total_tokens // len(batch),  # Approx per text
                    model=self.model,
                ))

            self._total_tokens += response.usage.total_tokens
            self._total_requests += 1

            logger.debug(f"Embedded batch of {len(batch)} texts ({response.usage.total_tokens} tokens)")

        return results

    def embed_query(self, query: str) -> List[float]:
        """Embed a search query; returns just the vector."""
        return self.embed(query).embedding

    @property
    def total_tokens(self) -> int:
        return self._total_tokens

    @property
    def total_requests(self) -> int:
        return self._total_requests

    @property
    def estimated_cost(self) -> float:
        """Estimated cost in USD."""
        # text-embedding-3-small: $0.00002 per 1K tokens
        return (self._total_tokens / 1000) * 0.00002
