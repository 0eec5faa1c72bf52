"""
CRM RAG Errors
==============

Exception hierarchy for the retrieval pipeline.

Every error carries a machine-readable ``category`` so the HTTP layer can
answer with a short message and a stable code, without leaking internals.
"""

from typing import Optional


class RAGError(Exception):
    """Base exception for the CRM RAG service."""

    category = "internal"

    def __init__(self, message: str, category: Optional[str] = None):
        self.message = message
        if category:
            self.category = category
        super().__init__(self.message)


class ValidationError(RAGError):
    """Malformed or missing query / ingestion payload."""

    category = "validation"


class UpstreamServiceError(RAGError):
    """Embedding or generation provider failure (timeout, auth, rate limit)."""

    category = "upstream_service"

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


class IndexNotReadyError(RAGError):
    """Operation attempted before the vector index was initialized."""

    category = "index_not_ready"


class IndexResetError(IndexNotReadyError):
    """The index was reset between the start of a write and the write itself."""

    category = "index_reset"

    def __init__(self, expected_epoch: int, current_epoch: int):
        self.expected_epoch = expected_epoch
        self.current_epoch = current_epoch
        super().__init__(
            f"Index was reset during ingestion (epoch {expected_epoch} -> {current_epoch})"
        )


class ResetError(RAGError):
    """Reset-all failed. The index state is indeterminate."""

    category = "reset"


class DataSourceError(RAGError):
    """A CRM data source could not be loaded."""

    category = "data_source"


class RAGQueryError(RAGError):
    """Retrieval or generation failure inside the answer orchestrator."""

    category = "retrieval_generation"

    def __init__(self, message: str, stage: str, cause: Optional[Exception] = None):
        self.stage = stage
        self.cause = cause
        self.cause_category = getattr(cause, "category", None) if cause else None
        super().__init__(message)
