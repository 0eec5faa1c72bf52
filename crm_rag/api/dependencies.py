"""FastAPI dependencies resolving the service container built at startup."""

from fastapi import Request

from ..errors import IndexNotReadyError
from ..rag.engine import RAGEngine
from ..rag.ingestion import RAGIngestion
from ..rag.vector_store import VectorIndex
from ..services import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise IndexNotReadyError("Services are not initialized")
    return services


def get_engine(request: Request) -> RAGEngine:
    return get_services(request).engine


def get_ingestion(request: Request) -> RAGIngestion:
    return get_services(request).ingestion


def get_index(request: Request) -> VectorIndex:
    return get_services(request).index
