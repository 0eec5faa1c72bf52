"""
CRM RAG LLM Client
==================

Generation gateway for grounded answers.
Supports Claude (Anthropic) with OpenAI as fallback.

Each client takes a system persona, optional prior conversation turns and the
final user prompt, and returns the first text block of the reply (or None
when the reply carries no text). Provider errors surface as
UpstreamServiceError; nothing is retried here.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import anthropic
import openai

from ..config import GenerationConfig
from ..errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class LLMProvider(Enum):
    """Supported LLM providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


@dataclass
class LLMResponse:
    """An LLM reply. ``content`` is None when the reply had no text block."""
    content: Optional[str]
    model: str
    provider: LLMProvider
    tokens_input: int
    tokens_output: int
    cost_usd: float

    @property
    def total_tokens(self) -> int:
        return self.tokens_input + self.tokens_output


class LLMClient(ABC):
    """Abstract LLM client."""

    PRICING: Dict[str, Dict[str, float]] = {}
    DEFAULT_PRICING = {"input": 3.0, "output": 15.0}

    def __init__(self, model: str, config: Optional[GenerationConfig] = None):
        self.config = config or GenerationConfig()
        self.model = model

    def _calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Cost in USD (pricing per 1M tokens)."""
        pricing = self.PRICING.get(self.model, self.DEFAULT_PRICING)
        cost = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000
        return round(cost, 6)

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        """
        Generate a reply.

        Args:
            prompt: Final user turn
            system: System persona
            history: Prior turns as {"role", "content"} dicts, sent verbatim
                and in order before ``prompt``
        """


class AnthropicClient(LLMClient):
    """
    Client for Claude (Anthropic).

    Available models:
    - claude-sonnet-4-20250514 (default)
    - claude-3-5-sonnet-20241022
    - claude-3-haiku-20240307 (fast, cheap)
    """

    # Pricing per 1M tokens (USD)
    PRICING = {
        "claude-3-5-sonnet-20241022": {"input": 3.0, "output": 15.0},
        "claude-sonnet-4-20250514": {"input": 3.0, "output": 15.0},
        "claude-3-haiku-20240307": {"input": 0.25, "output": 1.25},
    }

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
    ):
        super().__init__(model or self.DEFAULT_MODEL, config)
        self.api_key = api_key or self.config.anthropic_api_key
        self._client = None

        if not self.api_key:
            logger.warning("ANTHROPIC_API_KEY not set - answer generation disabled")

    def _get_client(self):
        """Lazy init of the Anthropic client."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key,
                timeout=self.config.request_timeout,
                max_retries=self.config.max_retries,
            )
        return self._client

    @staticmethod
    def _first_text(content) -> Optional[str]:
        for block in content or []:
            if getattr(block, "type", None) == "text":
                return block.text
        return None

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        """Generate a reply with Claude."""
        if not self.api_key:
            raise UpstreamServiceError("ANTHROPIC_API_KEY required", provider="anthropic")

        client = self._get_client()

        messages = list(history or [])
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens or self.config.max_tokens,
            "messages": messages,
            "temperature": self.config.temperature if temperature is None else temperature,
        }

        if system:
            kwargs["system"] = system

        try:
            response = await client.messages.create(**kwargs)
        except anthropic.AnthropicError as e:
            logger.error(f"Anthropic request failed: {e}")
            raise UpstreamServiceError(f"Generation provider failed: {type(e).__name__}", provider="anthropic") from e

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens

        return LLMResponse(
            content=self._first_text(response.content),
            model=self.model,
            provider=LLMProvider.ANTHROPIC,
            tokens_input=input_tokens,
            tokens_output=output_tokens,
            cost_usd=self._calculate_cost(input_tokens, output_tokens),
        )


class OpenAIClient(LLMClient):
    """
    Client for OpenAI GPT.
    Used as fallback when Anthropic is not configured.
    """

    PRICING = {
        "gpt-4o": {"input": 2.5, "output": 10.0},
        "gpt-4o-mini": {"input": 0.15, "output": 0.6},
    }
    DEFAULT_PRICING = {"input": 2.5, "output": 10.0}

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
    ):
        super().__init__(model or self.DEFAULT_MODEL, config)
        self.api_key = api_key or self.config.openai_api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.config.request_timeout,
                max_retries=self.config.max_retries,
            )
        return self._client

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        if not self.api_key:
            raise UpstreamServiceError("OPENAI_API_KEY required", provider="openai")

        client = self._get_client()

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(history or [])
        messages.append({"role": "user", "content": prompt})

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature if temperature is None else temperature,
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise UpstreamServiceError(f"Generation provider failed: {type(e).__name__}", provider="openai") from e

        content = response.choices[0].message.content if response.choices else None
        input_tokens = response.usage.prompt_tokens
        output_tokens = response.usage.completion_tokens

        return LLMResponse(
            content=content or None,
            model=self.model,
            provider=LLMProvider.OPENAI,
            tokens_input=input_tokens,
            tokens_output=output_tokens,
            cost_usd=self._calculate_cost(input_tokens, output_tokens),
        )


def get_llm_client(config: Optional[GenerationConfig] = None) -> LLMClient:
    """
    Factory for the generation client.

    Priority:
    1. Explicit LLM_PROVIDER
    2. ANTHROPIC_API_KEY present -> Claude
    3. OPENAI_API_KEY or GPT_API_KEY present -> GPT
    4. Error
    """
    config = config or GenerationConfig()

    if config.provider == "openai":
        return OpenAIClient(model=config.model, config=config)

    if config.provider == "anthropic" or config.anthropic_api_key:
        return AnthropicClient(model=config.model, config=config)

    if config.openai_api_key:
        return OpenAIClient(model=config.model, config=config)

    raise ValueError(
        "No LLM API key found. Set ANTHROPIC_API_KEY, OPENAI_API_KEY, or GPT_API_KEY"
    )
