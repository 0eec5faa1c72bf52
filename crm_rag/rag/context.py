"""
Context Assembly & Confidence
=============================

Turns filtered search results into the grounding block handed to the LLM,
and summarises retrieval quality as a single confidence value.
"""

import logging
from typing import Callable, List, Optional, Sequence

from .models import SearchResult

logger = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = "No relevant information was found."

ConfidenceStrategy = Callable[[Sequence[SearchResult]], float]


def mean_score_confidence(results: Sequence[SearchResult]) -> float:
    """
    Arithmetic mean of result scores, clamped to 1.0; 0.0 for no results.

    Not calibrated against ground truth. Swap in another ConfidenceStrategy
    if calibrated confidence is needed.
    """
    if not results:
        return 0.0
    average = sum(result.score for result in results) / len(results)
    return min(average, 1.0)


class ContextAssembler:
    """Formats retrieved documents as numbered, scored context blocks."""

    CHARS_PER_TOKEN = 4

    def __init__(
        self,
        max_tokens: int = 6000,
        confidence_strategy: Optional[ConfidenceStrategy] = None,
    ):
        self.max_tokens = max_tokens
        self.confidence_strategy = confidence_strategy or mean_score_confidence

    @staticmethod
    def format_block(index: int, result: SearchResult) -> str:
        return f"[Context {index}] (relevance: {result.score * 100:.1f}%)\n{result.document.content}"

    def assemble_context(self, results: List[SearchResult]) -> str:
        """
        Concatenate results, in input order, into one grounding block.

        Returns NO_CONTEXT_MESSAGE when nothing was retrieved. The first block
        is always kept; later blocks are dropped once the token budget is spent.
        """
        if not results:
            return NO_CONTEXT_MESSAGE

        context_parts = []
        estimated_tokens = 0

        for i, result in enumerate(results, 1):
            part = self.format_block(i, result)
            part_tokens = len(part) // self.CHARS_PER_TOKEN

            if context_parts and estimated_tokens + part_tokens > self.max_tokens:
                logger.debug(f"Context budget reached, dropped {len(results) - len(context_parts)} results")
                break

            context_parts.append(part)
            estimated_tokens += part_tokens

        return "\n\n".join(context_parts)

    def estimate_confidence(self, results: Sequence[SearchResult]) -> float:
        return self.confidence_strategy(results)
