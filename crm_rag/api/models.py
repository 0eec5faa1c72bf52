"""
CRM RAG API Models
==================

Pydantic models for API request/response serialization.
Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class QueryOptionsModel(BaseModel):
    """Per-request retrieval settings."""
    top_k: Optional[int] = Field(None, alias="topK", ge=1)
    min_score: Optional[float] = Field(None, alias="minScore", ge=0.0, le=1.0)

    class Config:
        populate_by_name = True


class QueryRequest(BaseModel):
    """Single-turn question."""
    query: str = Field(..., description="Natural-language question")
    options: Optional[QueryOptionsModel] = None


class MessageModel(BaseModel):
    """A prior conversation turn."""
    role: str = Field(..., description="user | assistant")
    content: str


class ConversationRequest(QueryRequest):
    """Question with prior turns, sent to the model unmodified."""
    history: List[MessageModel] = Field(default_factory=list)


class SourceModel(BaseModel):
    content: str
    metadata: Dict[str, Any]
    score: float


class QueryResponse(BaseModel):
    answer: str
    sources: List[SourceModel]
    confidence: float


class IngestRequest(BaseModel):
    """Direct ingestion of pre-rendered text."""
    source: str = Field(..., description="Document text")
    data_type: str = Field(..., alias="dataType", description="customer | quote | work_history")
    metadata: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True


class IngestResponse(BaseModel):
    success: bool
    message: str
    count: int


class DataSourceModel(BaseModel):
    """Where records are loaded from."""
    type: str = Field(..., description="csv | excel | json | api")
    path: Optional[str] = None
    api_endpoint: Optional[str] = Field(None, alias="apiEndpoint")
    headers: Optional[Dict[str, str]] = None

    class Config:
        populate_by_name = True


class BulkSourceModel(BaseModel):
    source: DataSourceModel
    data_type: str = Field(..., alias="dataType")

    class Config:
        populate_by_name = True


class BulkIngestRequest(BaseModel):
    sources: List[BulkSourceModel]


class BulkIngestResponse(BaseModel):
    success: bool
    message: str
    total: int
    by_type: Dict[str, int] = Field(..., alias="byType")
    failed: int

    class Config:
        populate_by_name = True


class DirectoryIngestRequest(BaseModel):
    directory_path: str = Field(..., alias="directoryPath")
    data_type: str = Field(..., alias="dataType")

    class Config:
        populate_by_name = True


class StatusResponse(BaseModel):
    collection_name: str = Field(..., alias="collectionName")
    total_documents: int = Field(..., alias="totalDocuments")

    class Config:
        populate_by_name = True


class DocumentModel(BaseModel):
    id: str
    content: str
    metadata: Dict[str, Any]


class DocumentListResponse(BaseModel):
    documents: List[DocumentModel]
    count: int
    limit: int
    offset: int


class ResetResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: datetime
    environment: str


class ErrorResponse(BaseModel):
    """Apology body returned for every failed request."""
    error: str
    category: str


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    500: {"model": ErrorResponse, "description": "Processing failed"},
    503: {"model": ErrorResponse, "description": "Knowledge base unavailable"},
}
