"""
RAG Engine
==========

Answer orchestrator for CRM questions.

Per call (no state kept between calls):
    RECEIVED -> RETRIEVED -> FILTERED -> CONTEXT_BUILT -> GENERATED -> RESPONDED
with FAILED reachable from any stage.

Candidates are always fetched with the full top_k and filtered afterwards
(inclusive min_score), so raising min_score can only shrink the source set.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import List, Optional, Sequence, Union

from ..ai.llm_client import LLMClient
from ..errors import IndexNotReadyError, RAGQueryError, ValidationError
from .context import ContextAssembler
from .models import (
    ConversationalRAGQuery,
    ConversationMessage,
    RAGOptions,
    RAGQuery,
    RAGResponse,
    SearchResult,
)
from .retriever import RAGRetriever

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are an assistant specialised in analysing CRM data for a sheet-metal and paint (body shop) business.

When answering:
1. Interpret customer records, quotes and work history accurately.
2. Use body shop terminology correctly (dent repair, repainting, coating, bumper replacement, panel work, etc.).
3. Base your answer on the provided context and be specific.
4. If information is missing or the context does not cover the question, say so clearly instead of guessing.
5. Report monetary amounts and dates exactly as they appear in the context.
6. Use polite, easy-to-understand language.

Keep answers concise and to the point."""

NO_ANSWER_MESSAGE = "Sorry, I could not generate an answer."

USER_PROMPT_TEMPLATE = """Answer the user's question using the context information below.

{context}

[User question]
{query}

[Answer]"""


class QueryStage(str, Enum):
    RECEIVED = "received"
    RETRIEVED = "retrieved"
    FILTERED = "filtered"
    CONTEXT_BUILT = "context_built"
    GENERATED = "generated"
    RESPONDED = "responded"
    FAILED = "failed"


def filter_by_score(results: Sequence[SearchResult], min_score: float) -> List[SearchResult]:
    """Keep results scoring at least ``min_score`` (inclusive), order preserved."""
    return [result for result in results if result.score >= min_score]


class RAGEngine:
    """
    Retrieval-augmented answering over indexed CRM records.

    Collaborators are injected; the engine holds no per-query state.
    """

    def __init__(
        self,
        retriever: RAGRetriever,
        llm: LLMClient,
        assembler: Optional[ContextAssembler] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.retriever = retriever
        self.llm = llm
        self.assembler = assembler or ContextAssembler()
        self.system_prompt = system_prompt

    @staticmethod
    def build_user_prompt(context: str, query: str) -> str:
        return USER_PROMPT_TEMPLATE.format(context=context, query=query)

    async def query(self, request: Union[RAGQuery, str]) -> RAGResponse:
        """Answer a single-turn question."""
        if isinstance(request, str):
            request = RAGQuery(query=request)
        return await self._run(request.query, request.options, history=None)

    async def conversational_query(self, request: ConversationalRAGQuery) -> RAGResponse:
        """Answer a question in the context of prior conversation turns."""
        if not isinstance(request.history, list):
            raise ValidationError("history must be a list of messages")
        try:
            history = [ConversationMessage.from_value(message) for message in request.history]
        except ValidationError as e:
            self._log_stage(QueryStage.FAILED, str(e))
            raise
        return await self._run(request.query, request.options, history=history)

    async def _run(
        self,
        query: str,
        options: Optional[RAGOptions],
        history: Optional[List[ConversationMessage]],
    ) -> RAGResponse:
        started = time.monotonic()

        # RECEIVED
        if not query or not query.strip():
            raise ValidationError("query is required")
        options = options or RAGOptions()
        self._log_stage(QueryStage.RECEIVED, f"top_k={options.top_k} min_score={options.min_score}")

        # RETRIEVED
        stage = QueryStage.RETRIEVED
        try:
            results = await asyncio.to_thread(self.retriever.search, query, options.top_k)
        except (ValidationError, IndexNotReadyError) as e:
            self._log_stage(QueryStage.FAILED, str(e))
            raise
        except Exception as e:
            raise self._failure(stage, e)
        self._log_stage(stage, f"{len(results)} candidates")

        # FILTERED
        sources = filter_by_score(results, options.min_score)
        self._log_stage(QueryStage.FILTERED, f"{len(sources)}/{len(results)} above {options.min_score}")

        # CONTEXT_BUILT
        context = self.assembler.assemble_context(sources)
        self._log_stage(QueryStage.CONTEXT_BUILT, f"{len(context)} chars")

        # GENERATED
        stage = QueryStage.GENERATED
        prompt = self.build_user_prompt(context, query)
        turns = [message.to_message() for message in history] if history else None
        try:
            response = await self.llm.generate(
                prompt=prompt,
                system=self.system_prompt,
                history=turns,
            )
        except Exception as e:
            raise self._failure(stage, e)
        self._log_stage(stage, f"{response.total_tokens} tokens")

        # RESPONDED
        answer = response.content or NO_ANSWER_MESSAGE
        confidence = self.assembler.estimate_confidence(sources)

        logger.info(
            f"Answered query with {len(sources)} sources, confidence {confidence:.2f}",
            extra={
                "stage": QueryStage.RESPONDED.value,
                "count": len(sources),
                "duration": round(time.monotonic() - started, 3),
            },
        )

        return RAGResponse(
            answer=answer,
            sources=[result.to_source() for result in sources],
            confidence=confidence,
        )

    def _failure(self, stage: QueryStage, error: Exception) -> RAGQueryError:
        logger.error(
            f"RAG query failed during {stage.value}: {error}",
            extra={"stage": QueryStage.FAILED.value},
        )
        failure = RAGQueryError(
            f"RAG query failed during {stage.value}",
            stage=stage.value,
            cause=error,
        )
        failure.__cause__ = error
        return failure

    @staticmethod
    def _log_stage(stage: QueryStage, detail: str):
        logger.debug(f"[{stage.value}] {detail}", extra={"stage": stage.value})
