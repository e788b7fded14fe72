"""
Grafana OTLP Metrics Exporter
==============================

Pushes LLM usage and drafting pipeline metrics to Grafana Cloud via OTLP.

Metrics exported:
- llm_tokens_total / llm_prompt_tokens / llm_completion_tokens
- llm_latency_ms: LLM request latency in milliseconds
- rag_retrieval_latency_ms / rag_synthesis_latency_ms / rag_total_latency_ms:
  per-stage timings of a drafting run
"""

import base64
import time
from typing import Optional, Dict, Any, List

import httpx

from draftdesk.config import settings
from draftdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _gauge(name: str, unit: str, description: str, value: int,
           timestamp_ns: int, attributes: List[dict]) -> Dict[str, Any]:
    return {
        "name": name,
        "unit": unit,
        "description": description,
        "gauge": {
            "dataPoints": [
                {
                    "asInt": value,
                    "timeUnixNano": timestamp_ns,
                    "attributes": attributes
                }
            ]
        }
    }


class GrafanaOTLPExporter:
    """
    Export metrics to Grafana Cloud via OTLP HTTP endpoint.

    Uses OpenTelemetry Protocol (OTLP) JSON format. Export never raises:
    failures are logged and reported as ``False``.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None,
        timeout_seconds: float = 10.0
    ):
        self._host = host or settings.grafana_host
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._timeout = timeout_seconds
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            # Don't double-append the path if host already includes it
            if "/otlp/v1/metrics" not in self._host:
                self._url = f"{self._host.rstrip('/')}/otlp/v1/metrics"
            else:
                self._url = self._host
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )
        else:
            logger.info(
                "Grafana OTLP exporter not configured - metrics will not be exported",
                extra={
                    "host_configured": bool(self._host),
                    "api_key_configured": bool(self._api_key),
                    "instance_id_configured": bool(self._instance_id)
                }
            )

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def _attributes(self, base: Dict[str, Any], extra: Optional[Dict[str, Any]]) -> List[dict]:
        merged = {"service": settings.app_name, **base, **(extra or {})}
        return [
            {"key": key, "value": {"stringValue": str(value)}}
            for key, value in merged.items()
        ]

    def _payload(self, metrics: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": [
                            {"key": "service.name", "value": {"stringValue": settings.app_name}},
                            {"key": "service.version", "value": {"stringValue": settings.app_version}},
                            {"key": "deployment.environment", "value": {"stringValue": settings.environment}},
                        ]
                    },
                    "scopeMetrics": [{"metrics": metrics}]
                }
            ]
        }

    async def _send(self, metrics: List[Dict[str, Any]], kind: str) -> bool:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id)
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, headers=headers, json=self._payload(metrics))
        except httpx.HTTPError as e:
            logger.error(
                "Error exporting metrics to Grafana",
                extra={"kind": kind, "error": str(e)}
            )
            return False

        if response.status_code in (200, 202):
            logger.debug(
                "Metrics exported to Grafana",
                extra={"kind": kind, "metrics_count": len(metrics)}
            )
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={
                "kind": kind,
                "status_code": response.status_code,
                "response": response.text[:500],
                "url": self._url
            }
        )
        return False

    async def export_llm_metrics(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int,
        operation: str = "chat_completion",
        attributes: Optional[Dict[str, str]] = None
    ) -> bool:
        """
        Export LLM usage metrics to Grafana.

        Args:
            model: LLM model name (e.g., "gpt-3.5-turbo")
            prompt_tokens: Number of prompt tokens used
            completion_tokens: Number of completion tokens generated
            latency_ms: Request latency in milliseconds
            operation: Operation type (embedding, draft, etc.)
            attributes: Additional attributes to attach to metrics

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        attrs = self._attributes({"model": model, "operation": operation}, attributes)

        metrics = [
            _gauge("llm_tokens_total", "1", "Total tokens used in LLM requests",
                   prompt_tokens + completion_tokens, timestamp_ns, attrs),
            _gauge("llm_latency_ms", "ms", "LLM request latency in milliseconds",
                   latency_ms, timestamp_ns, attrs),
            _gauge("llm_prompt_tokens", "1", "Number of prompt tokens in LLM requests",
                   prompt_tokens, timestamp_ns, attrs),
            _gauge("llm_completion_tokens", "1", "Number of completion tokens generated",
                   completion_tokens, timestamp_ns, attrs),
        ]
        return await self._send(metrics, kind="llm")

    async def export_pipeline_metrics(
        self,
        retrieval_ms: float,
        synthesis_ms: float,
        total_ms: float,
        retrieval_source: str,
        grounded: bool,
        attributes: Optional[Dict[str, str]] = None
    ) -> bool:
        """
        Export per-stage timings of one drafting run.

        Args:
            retrieval_ms: Embedding + search time
            synthesis_ms: Generation time
            total_ms: End-to-end time
            retrieval_source: knowledge_base or fallback
            grounded: Whether the draft came from the model rather than the apology text

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        attrs = self._attributes(
            {"retrieval_source": retrieval_source, "grounded": str(grounded).lower()},
            attributes
        )

        metrics = [
            _gauge("rag_retrieval_latency_ms", "ms", "Retrieval stage latency",
                   int(retrieval_ms), timestamp_ns, attrs),
            _gauge("rag_synthesis_latency_ms", "ms", "Synthesis stage latency",
                   int(synthesis_ms), timestamp_ns, attrs),
            _gauge("rag_total_latency_ms", "ms", "End-to-end drafting latency",
                   int(total_ms), timestamp_ns, attrs),
        ]
        return await self._send(metrics, kind="pipeline")


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> GrafanaOTLPExporter:
    """Get or create global Grafana exporter instance."""
    global _grafana_exporter
    if _grafana_exporter is None:
        _grafana_exporter = GrafanaOTLPExporter()
    return _grafana_exporter


def init_grafana_exporter(
    host: str,
    api_key: str,
    instance_id: str
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    global _grafana_exporter
    _grafana_exporter = GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id
    )
    return _grafana_exporter
