"""
Tests for the HTTP surface.
"""

from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from fastapi.testclient import TestClient

from draftdesk.config import Settings
from draftdesk.core import NotificationException, ProviderUnavailableException
from draftdesk.infrastructure.notifications import SlackNotifier
from draftdesk.main import create_app

WEBHOOK_PAYLOAD = {
    "message": {"text": "サイズ表を教えてください"},
    "user": {"name": "山田 花子", "email": "hanako@example.com"},
    "chat": {"id": "chat-001"},
    "source": {"type": "Channelio"},
}


@pytest.fixture
def config():
    return Settings(
        mock_llm=True,
        embedding_dimension=8,
        knowledge_store_backend="memory",
        knowledge_seed_path=None,
        environment="development"
    )


@pytest.fixture
def notifier():
    notifier = Mock(spec=SlackNotifier)
    notifier.is_configured = True
    notifier.send_draft = AsyncMock(return_value=True)
    notifier.send_error_notification = AsyncMock(return_value=True)
    notifier.close = AsyncMock()
    return notifier


@pytest.fixture
def client(config, notifier):
    app = create_app(config=config, notifier=notifier, configure_logging=False)
    with TestClient(app) as test_client:
        yield test_client


class TestChannelioWebhook:

    def test_draft_is_sent_to_operators(self, client, notifier):
        response = client.post("/webhook/channelio", json=WEBHOOK_PAYLOAD)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["warning"] is False
        message = notifier.send_draft.call_args.args[0]
        assert message.customer_name == "山田 花子"
        assert message.inquiry == "サイズ表を教えてください"
        assert message.draft

    def test_correlation_id_is_request_id(self, client):
        response = client.post(
            "/webhook/channelio", json=WEBHOOK_PAYLOAD, headers={"X-Correlation-ID": "req_abc"}
        )

        assert response.json()["request_id"] == "req_abc"
        assert response.headers["X-Correlation-ID"] == "req_abc"
        assert "X-Response-Time-Ms" in response.headers

    def test_missing_inquiry_is_rejected(self, client, notifier):
        response = client.post("/webhook/channelio", json={"message": {"text": "   "}})

        assert response.status_code == 400
        notifier.send_draft.assert_not_called()

    def test_defaults_for_anonymous_customer(self, client, notifier):
        client.post("/webhook/channelio", json={"message": {"text": "返品できますか"}})

        message = notifier.send_draft.call_args.args[0]
        assert message.customer_name == "不明な顧客"
        assert message.channel_type == "Channelio"

    def test_delivery_failure_still_acknowledges(self, client, notifier):
        notifier.send_draft.side_effect = NotificationException("channel_not_found")

        response = client.post("/webhook/channelio", json=WEBHOOK_PAYLOAD)

        assert response.status_code == 200
        notifier.send_error_notification.assert_awaited_once()

    def test_unreadable_slack_response_still_acknowledges(self, config):
        slack = SlackNotifier(
            bot_token="xoxb-test",
            channel_id="C123",
            max_retries=1,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(
                lambda r: httpx.Response(200, text="<html>proxy</html>", headers={"Content-Type": "text/html"})
            ))
        )
        app = create_app(config=config, notifier=slack, configure_logging=False)

        with TestClient(app) as test_client:
            response = test_client.post("/webhook/channelio", json=WEBHOOK_PAYLOAD)

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_unexpected_pipeline_error_sends_fallback_draft(self, client, notifier, config):
        client.app.state.orchestrator = Mock(run=AsyncMock(side_effect=RuntimeError("boom")))

        response = client.post("/webhook/channelio", json=WEBHOOK_PAYLOAD)

        body = response.json()
        assert body["warning"] is True
        assert body["fallback"] is True
        message = notifier.send_draft.call_args.args[0]
        assert message.fallback is True
        assert message.draft == config.fallback_draft

    def test_readiness_probe(self, client):
        body = client.get("/webhook/channelio").json()

        assert body["status"] == "ok"
        assert body["pipeline_ready"] is True


class TestDraftingRoutes:

    def test_respond_reports_fallback_retrieval(self, client):
        response = client.post("/drafting/respond", json={"query": "サイズ表を教えてください"})

        assert response.status_code == 200
        body = response.json()
        assert body["response"]
        assert body["retrieval_source"] == "fallback"
        assert body["degraded_reason"] == "no_matches"
        assert len(body["citations"]) == 3
        assert body["timings"]["total_ms"] >= 0

    def test_blank_query_is_400(self, client):
        response = client.post("/drafting/respond", json={"query": "   "})

        assert response.status_code == 400
        assert "correlation_id" in response.json()

    def test_ingested_document_is_retrievable(self, client):
        created = client.post(
            "/drafting/documents",
            json={"content": "サイズ表を教えてください", "metadata": {"source": "faq"}, "id": "doc-1"}
        )
        assert created.status_code == 201
        assert created.json()["document_ids"] == ["doc-1"]

        # The mock embedder maps identical text to the identical vector
        body = client.post("/drafting/respond", json={"query": "サイズ表を教えてください"}).json()

        assert body["retrieval_source"] == "knowledge_base"
        assert body["citations"][0]["source"] == "faq"

    def test_ingestion_provider_failure_is_503(self, client):
        client.app.state.ingester = Mock(ingest_seeds=AsyncMock(side_effect=ProviderUnavailableException("down")))

        response = client.post("/drafting/documents", json={"content": "サイズ表"})

        assert response.status_code == 503
        assert response.json()["error_type"] == "ProviderUnavailableException"

    def test_pipeline_unavailable_without_llm(self, notifier):
        config = Settings(mock_llm=False, openai_api_key=None, knowledge_seed_path=None)
        app = create_app(config=config, notifier=notifier, configure_logging=False)

        with TestClient(app) as test_client:
            response = test_client.post("/drafting/respond", json={"query": "サイズ表"})

        assert response.status_code == 503


class TestHealth:

    def test_health_reports_components(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["checks"]["llm_client"] == "available"
        assert body["checks"]["knowledge_store"] == "available (0 documents)"
        assert body["checks"]["slack"] == "configured"

    def test_root(self, client):
        assert client.get("/").json()["service"] == "draftdesk"
