"""
Operator Notifications
=======================

Slack client that hands inquiry drafts to the operator channel.

Handles:
- Slack Web API (chat.postMessage with a bot token) or an incoming webhook
- Circuit breaker to prevent cascade failures
- Exponential backoff retry
- Timeout handling
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any, List

import httpx

from draftdesk.core import NotificationException
from draftdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        """Check if request should be allowed."""
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        """Record successful request."""
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        """Record failed request."""
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


@dataclass
class OperatorDraftMessage:
    """Inquiry and draft handed to the operators."""
    title: str
    customer_name: str
    inquiry: str
    draft: str
    chat_link: Optional[str] = None
    channel_type: Optional[str] = None
    fallback: bool = False


class SlackNotifier:
    """
    Slack client for operator-facing draft delivery.

    Uses chat.postMessage when a bot token and channel are configured,
    otherwise the incoming webhook URL. Sending is skipped (returns False)
    when neither is configured.
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        channel_id: Optional[str] = None,
        webhook_url: Optional[str] = None,
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._bot_token = bot_token
        self._channel_id = channel_id
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool((self._bot_token and self._channel_id) or self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def build_draft_blocks(self, data: OperatorDraftMessage) -> List[Dict[str, Any]]:
        """Build Slack Block Kit blocks for an inquiry draft."""
        header = f"⚠️ {data.title}" if data.fallback else f"📩 {data.title}"
        fields = [{"type": "mrkdwn", "text": f"*Customer:*\n{data.customer_name}"}]
        if data.channel_type:
            fields.append({"type": "mrkdwn", "text": f"*Channel:*\n{data.channel_type}"})
        if data.chat_link:
            fields.append({"type": "mrkdwn", "text": f"*Chat:*\n<{data.chat_link}|View in Channel.io>"})

        return [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": header, "emoji": True}
            },
            {"type": "section", "fields": fields},
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Inquiry:*\n{data.inquiry}"}
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*AI-Generated Response Draft:*\n{data.draft}"}
            },
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": "_Please review and respond to the customer through Channel.io._"
                    }
                ]
            }
        ]

    async def _post(self, text: str, blocks: Optional[List[Dict[str, Any]]] = None) -> None:
        """Single delivery attempt; raises NotificationException on failure."""
        client = await self._get_client()
        payload: Dict[str, Any] = {"text": text, "unfurl_links": False, "unfurl_media": False}
        if blocks:
            payload["blocks"] = blocks

        try:
            if self._bot_token and self._channel_id:
                response = await client.post(
                    SLACK_POST_MESSAGE_URL,
                    headers={"Authorization": f"Bearer {self._bot_token}"},
                    json={"channel": self._channel_id, **payload}
                )
            else:
                response = await client.post(self._webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationException(f"request failed: {e}") from e

        if response.status_code != 200:
            raise NotificationException(
                f"unexpected status {response.status_code}",
                details={"status_code": response.status_code}
            )
        # chat.postMessage reports errors in the body with a 200
        if self._bot_token and self._channel_id:
            try:
                body = response.json()
            except ValueError as e:
                raise NotificationException("invalid response body") from e
            if not body.get("ok", False):
                raise NotificationException(f"API error: {body.get('error', 'unknown')}")

    async def send(self, text: str, blocks: Optional[List[Dict[str, Any]]] = None) -> bool:
        """
        Send a message with bounded retries.

        Returns:
            True if sent successfully, False when not configured or the circuit is open

        Raises:
            NotificationException: If every attempt failed
        """
        if not self.is_configured:
            logger.debug("Slack not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning("Circuit breaker open, skipping Slack notification")
            return False

        last_error: Optional[NotificationException] = None
        for attempt in range(self._max_retries):
            try:
                await self._post(text, blocks)
                self._circuit_breaker.record_success()
                return True
            except NotificationException as e:
                last_error = e
                logger.warning(
                    "Slack notification attempt failed",
                    extra={"error": str(e), "attempt": attempt + 1}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        raise NotificationException(
            f"giving up after {self._max_retries} attempts: {last_error}"
        )

    async def send_draft(self, data: OperatorDraftMessage) -> bool:
        """Send inquiry + draft to the operator channel."""
        text = f"{data.title} from {data.customer_name}\n\nInquiry:\n{data.inquiry}\n\nDraft:\n{data.draft}"
        sent = await self.send(text, self.build_draft_blocks(data))
        if sent:
            logger.info(
                "Draft sent to operators",
                extra={"customer_name": data.customer_name, "fallback": data.fallback}
            )
        return sent

    async def send_error_notification(self, error: BaseException, context: str) -> bool:
        """
        Report an error to the operator channel.

        Never raises: a failing error report is only logged.
        """
        text = f"🚨 Error in {context}\n`{type(error).__name__}: {error}`"
        try:
            return await self.send(text)
        except NotificationException as e:
            logger.error(
                "Failed to send error notification",
                extra={"context": context, "error": str(e)}
            )
            return False

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
