"""
Tests for RetrievalPipeline and the knowledge store adapter.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from draftdesk.config import DegradationReason, RetrievalSource
from draftdesk.core import InvalidInputException, ProviderUnavailableException, VectorStoreException
from draftdesk.drafting.application import RetrievalPipeline
from draftdesk.drafting.domain import DEFAULT_PASSAGES, RetrievedPassage
from draftdesk.drafting.infrastructure import KnowledgeStoreAdapter
from draftdesk.infrastructure.vectorstore import Document, InMemoryVectorStore, SearchResult
from tests.conftest import StaticKnowledgeStore


class TestRetrievalPipeline:

    @pytest.mark.asyncio
    async def test_returns_store_results_in_order(self, keyword_embedder, sizing_passages):
        store = StaticKnowledgeStore(sizing_passages)
        pipeline = RetrievalPipeline(keyword_embedder, store)

        outcome = await pipeline.retrieve_detailed("サイズ表を教えてください")

        assert outcome.passages == sizing_passages
        assert outcome.source == RetrievalSource.KNOWLEDGE_BASE
        assert not outcome.is_fallback

    @pytest.mark.asyncio
    async def test_passes_threshold_and_limit(self, keyword_embedder, sizing_passages):
        store = StaticKnowledgeStore(sizing_passages)
        pipeline = RetrievalPipeline(keyword_embedder, store)

        await pipeline.retrieve("サイズ表を教えてください")

        assert store.calls[0]["threshold"] == 0.7
        assert store.calls[0]["limit"] == 5
        assert store.calls[0]["query"] == (1.0, 0.0, 0.0, 0.0)

    @pytest.mark.asyncio
    async def test_provider_unavailable_falls_back(self, sizing_passages):
        embedder = Mock()
        embedder.embed = AsyncMock(side_effect=ProviderUnavailableException("rate limited"))
        store = StaticKnowledgeStore(sizing_passages)
        pipeline = RetrievalPipeline(embedder, store)

        outcome = await pipeline.retrieve_detailed("サイズ表を教えてください")

        assert outcome.passages == list(DEFAULT_PASSAGES)
        assert outcome.degraded_reason == DegradationReason.PROVIDER_UNAVAILABLE
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_empty_store_gives_same_fallback(self, keyword_embedder):
        failing_embedder = Mock()
        failing_embedder.embed = AsyncMock(side_effect=ProviderUnavailableException("down"))

        empty = await RetrievalPipeline(keyword_embedder, StaticKnowledgeStore([])).retrieve("サイズ")
        unavailable = await RetrievalPipeline(failing_embedder, StaticKnowledgeStore([])).retrieve("サイズ")

        assert empty == unavailable == list(DEFAULT_PASSAGES)

    @pytest.mark.asyncio
    async def test_store_exception_falls_back(self, keyword_embedder):
        store = Mock()
        store.search = AsyncMock(side_effect=VectorStoreException("timeout"))
        pipeline = RetrievalPipeline(keyword_embedder, store)

        outcome = await pipeline.retrieve_detailed("サイズ表")

        assert outcome.is_fallback
        assert outcome.degraded_reason == DegradationReason.STORE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_custom_fallback_passages(self, keyword_embedder):
        custom = [RetrievedPassage(content="営業時間は平日10時から18時です。", metadata={"source": "hours"})]
        pipeline = RetrievalPipeline(keyword_embedder, StaticKnowledgeStore([]), fallback_passages=custom)

        assert await pipeline.retrieve("営業時間") == custom

    def test_empty_fallback_rejected(self, keyword_embedder):
        with pytest.raises(ValueError):
            RetrievalPipeline(keyword_embedder, StaticKnowledgeStore([]), fallback_passages=[])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("inquiry", ["", "   ", "\n\t", None])
    async def test_blank_inquiry_rejected(self, keyword_embedder, inquiry):
        pipeline = RetrievalPipeline(keyword_embedder, StaticKnowledgeStore([]))

        with pytest.raises(InvalidInputException):
            await pipeline.retrieve(inquiry)

        assert keyword_embedder.calls == []


class TestKnowledgeStoreAdapter:

    @pytest.mark.asyncio
    async def test_converts_search_results(self):
        store = InMemoryVectorStore([
            Document(id="size-chart", text="サイズ表", embedding=(1.0, 0.0), metadata={"source": "size_chart"}),
        ])
        adapter = KnowledgeStoreAdapter(store)

        passages = await adapter.search((1.0, 0.0), threshold=0.7, limit=5)

        assert len(passages) == 1
        assert passages[0].content == "サイズ表"
        assert passages[0].source == "size_chart"
        assert passages[0].score == pytest.approx(1.0)
        assert passages[0].id == "size-chart"

    @pytest.mark.asyncio
    async def test_store_failure_collapses_to_empty(self):
        store = Mock()
        store.search = AsyncMock(side_effect=VectorStoreException("connection refused"))

        assert await KnowledgeStoreAdapter(store).search((1.0,), threshold=0.7, limit=5) == []

    @pytest.mark.asyncio
    async def test_skips_hits_without_content(self):
        store = Mock()
        store.search = AsyncMock(return_value=[
            SearchResult(content="", metadata={}, score=0.9, id="empty"),
            SearchResult(content="返品は7日以内", metadata={}, score=0.8, id="returns"),
        ])

        passages = await KnowledgeStoreAdapter(store).search((1.0,), threshold=0.7, limit=5)

        assert [p.id for p in passages] == ["returns"]
