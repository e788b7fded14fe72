"""
Shared fixtures for the draftdesk test suite.
"""

from typing import List
from unittest.mock import AsyncMock, Mock

import pytest

from draftdesk.drafting.application import IEmbeddingProvider, IKnowledgeStore
from draftdesk.drafting.domain import RetrievedPassage
from draftdesk.infrastructure.llm import ChatCompletionResult, EmbeddingResult, ILLMClient

# Each dimension fires on one keyword; enough geometry for ranking tests
KEYWORDS = ("サイズ", "返品", "洗濯", "素材")


def keyword_vector(text: str) -> tuple:
    return tuple(1.0 if keyword in text else 0.0 for keyword in KEYWORDS)


class KeywordEmbedder(IEmbeddingProvider):
    """Embeds text as a keyword-presence vector."""

    def __init__(self):
        self.calls: List[str] = []

    async def embed(self, text: str):
        self.calls.append(text)
        return keyword_vector(text)


class KeywordLLMClient(ILLMClient):
    """LLM client whose embeddings are keyword vectors and completions are canned."""

    def __init__(self, reply: str = "サイズ表はA70からD85までございます。"):
        self.reply = reply
        self.messages: List[list] = []

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        return EmbeddingResult(embedding=list(keyword_vector(text)), model="keyword")

    async def chat_completion(self, messages, temperature=0.3, max_tokens=500, operation="chat_completion"):
        self.messages.append(messages)
        return ChatCompletionResult(
            content=self.reply,
            model="fake-chat",
            prompt_tokens=10,
            completion_tokens=5,
            latency_ms=1
        )


class StaticKnowledgeStore(IKnowledgeStore):
    """Returns a fixed passage list and records the search arguments."""

    def __init__(self, passages: List[RetrievedPassage]):
        self._passages = passages
        self.calls: List[dict] = []

    async def search(self, query, threshold, limit):
        self.calls.append({"query": query, "threshold": threshold, "limit": limit})
        return list(self._passages)


@pytest.fixture
def sizing_passages() -> List[RetrievedPassage]:
    return [
        RetrievedPassage(
            content="一般的なノンワイヤーブラのサイズ表: A70, B70, C70, D70",
            metadata={"source": "size_chart", "category": "sizing"},
            score=0.92,
            id="size-chart"
        ),
        RetrievedPassage(
            content="サイズ選びで迷われた場合は、チャットサポートでご相談ください。",
            metadata={"source": "customer_service", "category": "support"},
            score=0.78,
            id="support-chat"
        ),
    ]


@pytest.fixture
def keyword_embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def generation_client():
    """Generation client returning a fixed completion."""
    client = Mock()
    client.chat_completion = AsyncMock(return_value=ChatCompletionResult(
        content="サイズ表をご案内いたします。",
        model="gpt-3.5-turbo",
        prompt_tokens=120,
        completion_tokens=30,
        latency_ms=250
    ))
    return client
