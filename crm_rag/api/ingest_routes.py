"""
CRM RAG Ingestion Routes
========================

Endpoints feeding the vector index. Handlers are plain functions: FastAPI
runs them in its thread pool since embedding and index calls block.
"""

import logging

from fastapi import APIRouter, Depends

from ..connectors.models import DataSource
from ..rag.ingestion import RAGIngestion
from ..rag.models import IngestionRequest
from .dependencies import get_ingestion
from .models import (
    ERROR_RESPONSES,
    BulkIngestRequest,
    BulkIngestResponse,
    DirectoryIngestRequest,
    IngestRequest,
    IngestResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ingest", tags=["Ingestion"], responses=ERROR_RESPONSES)


@router.post("", response_model=IngestResponse)
def ingest(request: IngestRequest, ingestion: RAGIngestion = Depends(get_ingestion)):
    """Index one pre-rendered text document."""
    count = ingestion.ingest_text(request.source, request.data_type, request.metadata)
    return IngestResponse(success=True, message=f"Ingested {count} document(s)", count=count)


@router.post("/bulk", response_model=BulkIngestResponse)
def ingest_bulk(request: BulkIngestRequest, ingestion: RAGIngestion = Depends(get_ingestion)):
    """
    Ingest several data sources.

    A failing source is counted in ``failed`` and skipped; the request
    itself still succeeds.
    """
    requests = [
        IngestionRequest(
            source=DataSource(
                type=item.source.type,
                path=item.source.path,
                api_endpoint=item.source.api_endpoint,
                headers=item.source.headers or {},
            ),
            data_type=item.data_type,
        )
        for item in request.sources
    ]
    summary = ingestion.ingest_bulk(requests)

    return BulkIngestResponse(
        success=True,
        message=f"Ingested {summary.total} record(s) from {len(requests) - summary.failed} source(s)",
        total=summary.total,
        by_type=summary.by_type,
        failed=summary.failed,
    )


@router.post("/directory", response_model=IngestResponse)
def ingest_directory(request: DirectoryIngestRequest, ingestion: RAGIngestion = Depends(get_ingestion)):
    """Ingest every JSON/CSV file of a server-side directory."""
    count = ingestion.ingest_directory(request.directory_path, request.data_type)
    return IngestResponse(success=True, message=f"Ingested {count} record(s)", count=count)
