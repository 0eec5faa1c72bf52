"""
CRM RAG Query Routes
====================

Question answering endpoints. Both run the full retrieval pipeline:
retrieve top-K, filter by minScore, build context, generate.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..rag.engine import RAGEngine
from ..rag.models import (
    DEFAULT_MIN_SCORE,
    DEFAULT_TOP_K,
    ConversationalRAGQuery,
    ConversationMessage,
    RAGOptions,
    RAGQuery,
)
from .dependencies import get_engine
from .models import (
    ERROR_RESPONSES,
    ConversationRequest,
    QueryOptionsModel,
    QueryRequest,
    QueryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/query", tags=["Query"], responses=ERROR_RESPONSES)


def to_options(options: Optional[QueryOptionsModel]) -> Optional[RAGOptions]:
    if options is None:
        return None
    return RAGOptions(
        top_k=DEFAULT_TOP_K if options.top_k is None else options.top_k,
        min_score=DEFAULT_MIN_SCORE if options.min_score is None else options.min_score,
    )


@router.post("", response_model=QueryResponse)
async def query(request: QueryRequest, engine: RAGEngine = Depends(get_engine)):
    """Answer a question from the indexed CRM records."""
    response = await engine.query(RAGQuery(query=request.query, options=to_options(request.options)))
    return response.to_dict()


@router.post("/conversation", response_model=QueryResponse)
async def conversational_query(request: ConversationRequest, engine: RAGEngine = Depends(get_engine)):
    """
    Answer a follow-up question.

    History turns are forwarded to the model as-is, in order, before the
    context + question turn.
    """
    history = [ConversationMessage(role=message.role, content=message.content) for message in request.history]
    response = await engine.conversational_query(ConversationalRAGQuery(
        query=request.query,
        options=to_options(request.options),
        history=history,
    ))
    return response.to_dict()
