"""
Tests for AnswerSynthesizer and the draft prompt.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from draftdesk.config import PromptMarker
from draftdesk.core import InvalidInputException, ProviderUnavailableException
from draftdesk.drafting.application import AnswerSynthesizer
from draftdesk.drafting.application.services import DEFAULT_FALLBACK_DRAFT
from draftdesk.drafting.domain import CustomerContext, DraftPromptBuilder, RetrievedPassage
from draftdesk.infrastructure.llm import ChatCompletionResult, MockLLMClient


class TestDraftPromptBuilder:

    def test_passages_are_numbered_with_metadata(self, sizing_passages):
        context = DraftPromptBuilder.build_context(sizing_passages)

        assert context.startswith("[1] (source: size_chart, category: sizing)\n")
        assert "[2] (source: customer_service, category: support)" in context

    def test_system_prompt_wraps_passages_and_customer(self, sizing_passages):
        customer = CustomerContext(name="山田 花子", channel_type="Channelio", inquiry_category="サイズ")

        prompt = DraftPromptBuilder.build_system_prompt(sizing_passages, customer)

        assert PromptMarker.REFERENCE_OPEN in prompt
        assert PromptMarker.REFERENCE_CLOSE in prompt
        assert "- Name: 山田 花子" in prompt
        assert "その情報は持ち合わせていません" in prompt

    def test_inquiry_is_user_turn(self, sizing_passages):
        messages = DraftPromptBuilder.build_messages("  サイズ表を教えてください  ", sizing_passages)

        assert messages[0]["role"] == "system"
        assert messages[1] == {"role": "user", "content": "サイズ表を教えてください"}

    def test_long_snippets_are_truncated(self):
        passage = RetrievedPassage(content="あ" * 300, metadata={"source": "faq"})

        citation = DraftPromptBuilder.build_citations([passage])[0]

        assert len(citation.snippet) == 203
        assert citation.snippet.endswith("...")


class TestAnswerSynthesizer:

    @pytest.mark.asyncio
    async def test_generation_parameters(self, generation_client, sizing_passages):
        synthesizer = AnswerSynthesizer(generation_client)

        draft = await synthesizer.synthesize("サイズ表を教えてください", sizing_passages)

        kwargs = generation_client.chat_completion.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 500
        assert "A70, B70, C70, D70" in kwargs["messages"][0]["content"]
        assert draft.text == "サイズ表をご案内いたします。"
        assert draft.grounded
        assert [c.source for c in draft.citations] == ["size_chart", "customer_service"]
        assert draft.prompt_tokens == 120

    @pytest.mark.asyncio
    async def test_provider_failure_returns_apology(self, sizing_passages):
        client = Mock()
        client.chat_completion = AsyncMock(side_effect=ProviderUnavailableException("503"))

        draft = await AnswerSynthesizer(client).synthesize("サイズ表", sizing_passages)

        assert draft.text == DEFAULT_FALLBACK_DRAFT
        assert not draft.grounded
        assert draft.fallback_reason.startswith("generation error")
        assert draft.citations == []

    @pytest.mark.asyncio
    async def test_unexpected_failure_returns_apology(self, sizing_passages):
        client = Mock()
        client.chat_completion = AsyncMock(side_effect=KeyError("choices"))

        draft = await AnswerSynthesizer(client).synthesize("サイズ表", sizing_passages)

        assert draft.text == DEFAULT_FALLBACK_DRAFT

    @pytest.mark.asyncio
    async def test_client_raising_before_awaiting_returns_apology(self, sizing_passages):
        client = Mock()
        client.chat_completion = Mock(side_effect=RuntimeError("sync failure"))

        draft = await AnswerSynthesizer(client).synthesize("サイズ表", sizing_passages)

        assert draft.text == DEFAULT_FALLBACK_DRAFT
        assert not draft.grounded
        assert draft.fallback_reason == "generation error: RuntimeError"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   \n"])
    async def test_empty_completion_returns_apology(self, sizing_passages, content):
        client = Mock()
        client.chat_completion = AsyncMock(return_value=ChatCompletionResult(
            content=content, model="gpt-3.5-turbo", prompt_tokens=1, completion_tokens=0, latency_ms=1
        ))

        draft = await AnswerSynthesizer(client, fallback_text="担当者が確認します。").synthesize(
            "サイズ表", sizing_passages
        )

        assert draft.text == "担当者が確認します。"
        assert draft.fallback_reason == "empty completion"

    @pytest.mark.asyncio
    async def test_timeout_returns_apology(self, sizing_passages):
        async def slow_completion(**kwargs):
            await asyncio.sleep(1)

        client = Mock()
        client.chat_completion = slow_completion

        draft = await AnswerSynthesizer(client, timeout_seconds=0.01).synthesize("サイズ表", sizing_passages)

        assert draft.fallback_reason == "timeout"

    @pytest.mark.asyncio
    async def test_blank_inquiry_rejected(self, generation_client, sizing_passages):
        with pytest.raises(InvalidInputException):
            await AnswerSynthesizer(generation_client).synthesize("  ", sizing_passages)
        generation_client.chat_completion.assert_not_called()

    @pytest.mark.asyncio
    async def test_echo_client_draft_is_grounded_in_passages(self, sizing_passages):
        draft = await AnswerSynthesizer(MockLLMClient()).synthesize("サイズ表を教えてください", sizing_passages)

        assert "A70, B70, C70, D70" in draft.text
        assert draft.model == MockLLMClient.MODEL

    def test_blank_fallback_text_rejected(self, generation_client):
        with pytest.raises(ValueError):
            AnswerSynthesizer(generation_client, fallback_text=" ")
