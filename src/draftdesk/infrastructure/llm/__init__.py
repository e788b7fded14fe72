"""
LLM Client Infrastructure
==========================

Wrapper for the OpenAI API providing a clean interface for embedding and
chat-completion calls.

Every upstream failure (network, auth, rate limit, timeout, malformed
response) is collapsed to ProviderUnavailableException at this boundary.
Clients never retry; callers decide how to degrade.
"""

import hashlib
import math
import random
import re
import time
from typing import List, Optional, Tuple
from abc import ABC, abstractmethod

from openai import AsyncOpenAI

from draftdesk.config import Settings, PromptMarker
from draftdesk.core import ProviderUnavailableException, ConfigurationException
from draftdesk.shared.infrastructure.grafana import GrafanaOTLPExporter
from draftdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EmbeddingResult:
    """Result of an embedding generation."""

    def __init__(self, embedding: List[float], model: str):
        self.embedding: Tuple[float, ...] = tuple(float(v) for v in embedding)
        self.model = model
        self.dimension = len(self.embedding)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for text."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation for embeddings and GPT chat models.

    Provides async wrapper around OpenAI SDK operations.
    """

    def __init__(
        self,
        api_key: Optional[str],
        chat_model: str = "gpt-3.5-turbo",
        embedding_model: str = "text-embedding-3-small",
        embedding_dimension: Optional[int] = None,
        timeout_seconds: float = 30.0,
        metrics_exporter: Optional[GrafanaOTLPExporter] = None
    ):
        if not api_key:
            raise ConfigurationException("OpenAI API key not configured")

        # max_retries=0: the SDK would otherwise retry on its own
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)
        self._model = chat_model
        self._embedding_model = embedding_model
        self._embedding_dimension = embedding_dimension
        self._metrics = metrics_exporter

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text using the OpenAI embedding model.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector

        Raises:
            ProviderUnavailableException: If the request fails or the response
                does not carry a vector of the expected dimension
        """
        try:
            response = await self._client.embeddings.create(
                model=self._embedding_model,
                input=text.replace("\n", " ")
            )
            result = EmbeddingResult(
                embedding=response.data[0].embedding,
                model=self._embedding_model
            )
        except Exception as e:
            raise ProviderUnavailableException(f"Embedding generation failed: {e}") from e

        if self._embedding_dimension and result.dimension != self._embedding_dimension:
            raise ProviderUnavailableException(
                f"Embedding dimension {result.dimension} does not match "
                f"configured dimension {self._embedding_dimension}",
                details={"model": self._embedding_model}
            )
        return result

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using OpenAI GPT.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            operation: Operation type for metrics

        Returns:
            ChatCompletionResult with generated text (possibly empty)

        Raises:
            ProviderUnavailableException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
            content = response.choices[0].message.content or ""
            usage = response.usage
            prompt_tokens = usage.prompt_tokens if usage else 0
            completion_tokens = usage.completion_tokens if usage else 0
        except Exception as e:
            raise ProviderUnavailableException(f"Chat completion failed: {e}") from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        if self._metrics and self._metrics.is_enabled():
            await self._metrics.export_llm_metrics(
                model=self._model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                latency_ms=latency_ms,
                operation=operation
            )

        return ChatCompletionResult(
            content=content,
            model=self._model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms
        )


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for build/preview environments and tests.

    Returns predictable responses without calling external APIs:
    - embeddings are deterministic unit vectors seeded from the text hash
    - completions mechanically echo the reference passages of the system prompt
    """

    MODEL = "mock-model"

    def __init__(self, embedding_dimension: int = 1536):
        self._dimension = embedding_dimension

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Return a deterministic pseudo-embedding based on the text hash."""
        seed = int(hashlib.sha256(text.encode("utf-8")).hexdigest()[:16], 16)
        rng = random.Random(seed)
        vector = [rng.uniform(-1, 1) for _ in range(self._dimension)]
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return EmbeddingResult(
            embedding=[v / norm for v in vector],
            model="mock-embedding"
        )

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Echo the reference passages found in the system message."""
        system_text = "\n".join(
            str(m.get("content", "")) for m in messages if m.get("role") == "system"
        )
        pattern = re.escape(PromptMarker.REFERENCE_OPEN) + r"(.*?)" + re.escape(PromptMarker.REFERENCE_CLOSE)
        match = re.search(pattern, system_text, flags=re.DOTALL)
        reference = match.group(1).strip() if match else ""

        if reference:
            content = f"[mock draft] 参考情報に基づく回答案です。\n{reference}"
        else:
            content = "[mock draft] その情報は持ち合わせていません。"

        return ChatCompletionResult(
            content=content,
            model=self.MODEL,
            prompt_tokens=len(system_text),
            completion_tokens=len(content),
            latency_ms=0
        )


def create_llm_client(
    config: Settings,
    metrics_exporter: Optional[GrafanaOTLPExporter] = None
) -> ILLMClient:
    """
    Build the LLM client for the current deployment.

    ``mock_llm`` replaces the build-time dummy branches: it is decided here,
    once, and never inside the drafting pipeline.
    """
    if config.mock_llm:
        logger.info("Using mock LLM client", extra={"environment": config.environment})
        return MockLLMClient(embedding_dimension=config.embedding_dimension)

    return OpenAILLMClient(
        api_key=config.openai_api_key,
        chat_model=config.llm_model,
        embedding_model=config.embedding_model,
        embedding_dimension=config.embedding_dimension,
        timeout_seconds=config.openai_timeout_seconds,
        metrics_exporter=metrics_exporter
    )
