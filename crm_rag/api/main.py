"""
CRM RAG FastAPI Application
===========================

REST API for the body shop CRM question-answering service.

Endpoints:
    GET  /health                  - Health check
    POST /api/query               - Answer a question
    POST /api/query/conversation  - Answer a follow-up question
    POST /api/ingest              - Ingest pre-rendered text
    POST /api/ingest/bulk         - Ingest several data sources
    POST /api/ingest/directory    - Ingest a directory of JSON/CSV exports
    GET  /api/status              - Collection status
    GET  /api/documents           - Paged document listing
    POST /api/reset               - Drop and recreate the collection

Usage:
    uvicorn crm_rag.api.main:create_app --factory --port 3000

    Or with CLI:
    python -m crm_rag.api.main
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..errors import RAGError
from ..logging_config import setup_logging
from ..rag.models import parse_data_type
from ..rag.vector_store import VectorIndex
from ..services import ServiceContainer, build_services
from .dependencies import get_index
from .ingest_routes import router as ingest_router
from .models import (
    DocumentListResponse,
    ERROR_RESPONSES,
    DocumentModel,
    ErrorResponse,
    HealthResponse,
    ResetResponse,
    StatusResponse,
)
from .query_routes import router as query_router

logger = logging.getLogger(__name__)

STATUS_BY_CATEGORY = {
    "validation": 400,
    "index_not_ready": 503,
    "index_reset": 503,
}

USER_MESSAGES = {
    "index_not_ready": "Sorry, the knowledge base is not available right now. Please try again later.",
    "index_reset": "Sorry, the knowledge base was reset while your request was running. Please try again.",
    "retrieval_generation": "Sorry, an answer could not be produced right now. Please try again later.",
    "upstream_service": "Sorry, an external service is unavailable right now. Please try again later.",
    "data_source": "Sorry, the data source could not be loaded.",
    "reset": "Sorry, the knowledge base could not be reset.",
}
DEFAULT_MESSAGE = "Sorry, something went wrong while processing your request."

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def error_response(status_code: int, message: str, category: str) -> JSONResponse:
    body = ErrorResponse(error=message, category=category)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def handle_rag_error(request: Request, exc: RAGError) -> JSONResponse:
    status_code = STATUS_BY_CATEGORY.get(exc.category, 500)
    if exc.category == "validation":
        message = f"Sorry, the request was invalid: {exc.message}"
    else:
        message = USER_MESSAGES.get(exc.category, DEFAULT_MESSAGE)

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed [{exc.category}]: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")

    return error_response(status_code, message, exc.category)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = "malformed body"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return error_response(400, f"Sorry, the request was invalid: {detail}", "validation")


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} failed unexpectedly")
    return error_response(500, DEFAULT_MESSAGE, "internal")


def create_app(
    services: Optional[ServiceContainer] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Prebuilt service container; built from settings at
            startup when omitted
        settings: Settings used for CORS, health and service construction
    """
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting CRM RAG API...")
        if app.state.services is None:
            app.state.services = build_services(settings)
        logger.info("Services initialized")

        yield

        logger.info("Shutting down CRM RAG API...")

    app = FastAPI(
        title="CRM RAG API",
        description="Question answering over body shop CRM records",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    origins = list(DEFAULT_ORIGINS)
    origins.extend(settings.server.cors_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RAGError, handle_rag_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(query_router)
    app.include_router(ingest_router)

    # ========================================================================
    # HEALTH ENDPOINT
    # ========================================================================

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc),
            environment=settings.server.environment,
        )

    # ========================================================================
    # ADMIN ENDPOINTS
    # ========================================================================

    @app.get("/api/status", response_model=StatusResponse, responses=ERROR_RESPONSES)
    def get_status(index: VectorIndex = Depends(get_index)):
        """Collection name and document count."""
        return index.status()

    @app.get("/api/documents", response_model=DocumentListResponse, responses=ERROR_RESPONSES)
    def list_documents(
        limit: int = Query(20, ge=1, le=100, description="Page size"),
        offset: int = Query(0, ge=0, description="Documents to skip"),
        data_type: Optional[str] = Query(None, alias="type", description="customer | quote | work_history"),
        index: VectorIndex = Depends(get_index),
    ):
        """Browse indexed documents, optionally restricted to one record type."""
        where = {"type": parse_data_type(data_type).value} if data_type else None
        documents = index.list_documents(limit=limit, offset=offset, where=where)
        return DocumentListResponse(
            documents=[
                DocumentModel(id=doc.id, content=doc.content, metadata=doc.metadata)
                for doc in documents
            ],
            count=len(documents),
            limit=limit,
            offset=offset,
        )

    @app.post("/api/reset", response_model=ResetResponse, responses=ERROR_RESPONSES)
    def reset(index: VectorIndex = Depends(get_index)):
        """
        Drop every document and recreate an empty collection.

        Ingestion that was in flight when the reset happened is rejected
        rather than written into the new collection.
        """
        index.reset()
        return ResetResponse(success=True, message=f"Collection '{index.collection_name}' was reset")

    return app


def run(settings: Optional[Settings] = None):
    """Configure logging and serve the API with uvicorn."""
    import uvicorn

    settings = settings or get_settings()
    setup_logging(settings.logging)

    uvicorn.run(
        create_app(settings=settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
