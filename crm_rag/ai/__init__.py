"""
CRM RAG AI Module
=================

Generation gateway used to write grounded answers:
- Claude (Anthropic) by default
- OpenAI chat models as fallback
"""

from .llm_client import (
    AnthropicClient,
    LLMClient,
    LLMProvider,
    LLMResponse,
    OpenAIClient,
    get_llm_client,
)

__all__ = [
    "AnthropicClient",
    "LLMClient",
    "LLMProvider",
    "LLMResponse",
    "OpenAIClient",
    "get_llm_client",
]
