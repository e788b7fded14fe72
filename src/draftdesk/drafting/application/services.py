"""
Drafting Application Services
==============================

Application services for retrieval-augmented draft generation.

RetrievalPipeline -> AnswerSynthesizer, sequenced by RAGOrchestrator.
Each external call is attempted once; resilience comes from substituting
fallback values, never from repetition. Only InvalidInputException escapes
the orchestrator.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from draftdesk.config import RetrievalSource, DegradationReason
from draftdesk.core import (
    ExternalServiceException,
    ProviderUnavailableException,
    VectorStoreException,
    RetrievalDegradedException,
    SynthesisFailedException,
)
from draftdesk.drafting.domain import (
    EmbeddingVector,
    RetrievedPassage,
    DEFAULT_PASSAGES,
    RetrievalOutcome,
    CustomerContext,
    DraftAnswer,
    StageTimings,
    DraftResult,
    DraftPromptBuilder,
    require_inquiry,
)
from draftdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 0.7
DEFAULT_LIMIT = 5
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 500
DEFAULT_FALLBACK_DRAFT = (
    "申し訳ありませんが、技術的な問題により回答を生成できませんでした。"
    "スタッフが直接対応いたします。"
)


# ========== Collaborator Interfaces ==========

class IEmbeddingProvider(ABC):
    """Turns text into a fixed-length vector."""

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingVector:
        """Embed text; raises ProviderUnavailableException on any upstream failure."""


class IKnowledgeStore(ABC):
    """Read-only similarity search over knowledge documents."""

    @abstractmethod
    async def search(
        self,
        query: EmbeddingVector,
        threshold: float,
        limit: int
    ) -> List[RetrievedPassage]:
        """Passages scoring at least ``threshold``, most similar first; [] when unreachable."""


class IGenerationClient(ABC):
    """Interface for chat-completion generation."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float,
        max_tokens: int,
        operation: str = "chat_completion"
    ) -> Any:
        """Return an object with ``content``, ``model``, ``prompt_tokens``, ``completion_tokens``."""


class IPipelineMetrics(ABC):
    """Receives per-stage timings of a drafting run."""

    @abstractmethod
    def is_enabled(self) -> bool:
        """Whether export is configured."""

    @abstractmethod
    async def export_pipeline_metrics(
        self,
        retrieval_ms: float,
        synthesis_ms: float,
        total_ms: float,
        retrieval_source: str,
        grounded: bool,
        attributes: Optional[dict] = None
    ) -> bool:
        """Export timings; returns False instead of raising."""


# ========== Application Services ==========

class RetrievalPipeline:
    """
    Embeds the inquiry and searches the knowledge store.

    Falls back to a fixed passage set when the embedding provider is
    unavailable or nothing clears the similarity threshold, so the output is
    never empty.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        knowledge_store: IKnowledgeStore,
        threshold: float = DEFAULT_THRESHOLD,
        limit: int = DEFAULT_LIMIT,
        fallback_passages: Sequence[RetrievedPassage] = DEFAULT_PASSAGES
    ):
        if not fallback_passages:
            raise ValueError("fallback_passages must contain at least one passage")
        self._embedder = embedding_provider
        self._store = knowledge_store
        self._threshold = threshold
        self._limit = limit
        self._fallback = tuple(fallback_passages)

    @property
    def fallback_passages(self) -> List[RetrievedPassage]:
        return list(self._fallback)

    async def retrieve(self, inquiry: str) -> List[RetrievedPassage]:
        """
        Retrieve grounding passages for an inquiry.

        Returns:
            Ranked passages, or the default passage set; never empty

        Raises:
            InvalidInputException: If the inquiry is blank
        """
        outcome = await self.retrieve_detailed(inquiry)
        return outcome.passages

    async def retrieve_detailed(self, inquiry: str) -> RetrievalOutcome:
        """Like ``retrieve`` but tagged with the passage source and any degradation reason."""
        require_inquiry(inquiry)

        try:
            passages = await self._search(inquiry)
        except RetrievalDegradedException as e:
            logger.warning(
                "Retrieval degraded, using default passages",
                extra={"reason": e.reason, "fallback_count": len(self._fallback)}
            )
            return RetrievalOutcome(
                passages=list(self._fallback),
                source=RetrievalSource.FALLBACK,
                degraded_reason=e.reason
            )

        logger.info(
            "Retrieved passages",
            extra={
                "passage_count": len(passages),
                "top_score": passages[0].score,
                "threshold": self._threshold
            }
        )
        return RetrievalOutcome(passages=passages, source=RetrievalSource.KNOWLEDGE_BASE)

    async def _search(self, inquiry: str) -> List[RetrievedPassage]:
        try:
            embedding = await self._embedder.embed(inquiry)
        except ProviderUnavailableException as e:
            logger.warning("Embedding provider unavailable", extra={"error": str(e)})
            raise RetrievalDegradedException(DegradationReason.PROVIDER_UNAVAILABLE) from e

        try:
            passages = await self._store.search(embedding, threshold=self._threshold, limit=self._limit)
        except VectorStoreException as e:
            logger.warning("Knowledge store unavailable", extra={"error": str(e)})
            raise RetrievalDegradedException(DegradationReason.STORE_UNAVAILABLE) from e

        if not passages:
            raise RetrievalDegradedException(DegradationReason.NO_MATCHES)
        return list(passages)


class AnswerSynthesizer:
    """
    Produces a grounded draft from an inquiry and its passages.

    Grounding is enforced by the system prompt only; the completion is not
    verified against the passages afterwards.
    """

    def __init__(
        self,
        generation_client: IGenerationClient,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        fallback_text: str = DEFAULT_FALLBACK_DRAFT,
        timeout_seconds: Optional[float] = None
    ):
        if not fallback_text or not fallback_text.strip():
            raise ValueError("fallback_text must not be empty")
        self._llm = generation_client
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._fallback_text = fallback_text
        self._timeout = timeout_seconds

    async def synthesize(
        self,
        inquiry: str,
        passages: Sequence[RetrievedPassage],
        customer: Optional[CustomerContext] = None
    ) -> DraftAnswer:
        """
        Generate a draft reply.

        Args:
            inquiry: Customer's question
            passages: Grounding passages, most relevant first
            customer: Optional customer context for addressing the reply

        Returns:
            DraftAnswer; the static apology when generation fails

        Raises:
            InvalidInputException: If the inquiry is blank
        """
        require_inquiry(inquiry)
        citations = DraftPromptBuilder.build_citations(passages)

        try:
            response = await self._generate(inquiry, passages, customer)
        except SynthesisFailedException as e:
            logger.warning("Synthesis failed, using fallback draft", extra={"reason": e.reason})
            return DraftAnswer(
                text=self._fallback_text,
                grounded=False,
                fallback_reason=e.reason,
                citations=[]
            )

        return DraftAnswer(
            text=response.content.strip(),
            grounded=True,
            citations=citations,
            model=response.model,
            prompt_tokens=response.prompt_tokens,
            completion_tokens=response.completion_tokens
        )

    async def _generate(
        self,
        inquiry: str,
        passages: Sequence[RetrievedPassage],
        customer: Optional[CustomerContext]
    ) -> Any:
        try:
            messages = DraftPromptBuilder.build_messages(inquiry, passages, customer)
            call = self._llm.chat_completion(
                messages=messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                operation="draft"
            )
            if self._timeout is not None:
                response = await asyncio.wait_for(call, timeout=self._timeout)
            else:
                response = await call
        except asyncio.TimeoutError as e:
            raise SynthesisFailedException("timeout") from e
        except ExternalServiceException as e:
            raise SynthesisFailedException(f"generation error: {e.message}") from e
        except Exception as e:
            logger.exception("Unexpected generation client failure")
            raise SynthesisFailedException(f"generation error: {type(e).__name__}") from e

        content = getattr(response, "content", None)
        if not content or not content.strip():
            raise SynthesisFailedException("empty completion")
        return response


class RAGOrchestrator:
    """
    End-to-end drafting: retrieval, then synthesis.

    Both stages absorb their own failures, so for any non-blank inquiry a
    non-empty draft is returned.
    """

    def __init__(
        self,
        retrieval: RetrievalPipeline,
        synthesizer: AnswerSynthesizer,
        metrics: Optional[IPipelineMetrics] = None
    ):
        self._retrieval = retrieval
        self._synthesizer = synthesizer
        self._metrics = metrics

    async def answer(self, inquiry: str) -> str:
        """
        Draft a reply to an inquiry.

        Raises:
            InvalidInputException: If the inquiry is blank
        """
        result = await self.run(inquiry)
        return result.text

    async def run(self, inquiry: str, customer: Optional[CustomerContext] = None) -> DraftResult:
        """Draft a reply and report the retrieval outcome and stage timings."""
        require_inquiry(inquiry)
        start = time.perf_counter()

        outcome = await self._retrieval.retrieve_detailed(inquiry)
        retrieved_at = time.perf_counter()

        draft = await self._synthesizer.synthesize(inquiry, outcome.passages, customer)
        finished_at = time.perf_counter()

        timings = StageTimings(
            retrieval_ms=round((retrieved_at - start) * 1000, 2),
            synthesis_ms=round((finished_at - retrieved_at) * 1000, 2),
            total_ms=round((finished_at - start) * 1000, 2)
        )

        logger.info(
            "Draft generated",
            extra={
                "retrieval_source": outcome.source,
                "degraded_reason": outcome.degraded_reason,
                "passage_count": len(outcome.passages),
                "grounded": draft.grounded,
                "fallback_reason": draft.fallback_reason,
                "retrieval_ms": timings.retrieval_ms,
                "synthesis_ms": timings.synthesis_ms,
                "total_ms": timings.total_ms
            }
        )

        if self._metrics and self._metrics.is_enabled():
            await self._metrics.export_pipeline_metrics(
                retrieval_ms=timings.retrieval_ms,
                synthesis_ms=timings.synthesis_ms,
                total_ms=timings.total_ms,
                retrieval_source=outcome.source,
                grounded=draft.grounded
            )

        return DraftResult(draft=draft, retrieval=outcome, timings=timings)
