"""
Drafting Controllers (API Routes)
==================================

FastAPI routes for the chat webhook and operator tooling.

Controllers delegate to application services held in ``app.state``.
"""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status

from draftdesk.config import Settings, get_settings
from draftdesk.core import InvalidInputException, NotificationException
from draftdesk.drafting.application import (
    RAGOrchestrator,
    ChannelioWebhookPayload,
    WebhookResponse,
    RespondRequest,
    RespondResponse,
    IngestDocumentRequest,
    IngestResponse,
)
from draftdesk.drafting.domain import CustomerContext
from draftdesk.drafting.infrastructure import DocumentIngester, KnowledgeSeed
from draftdesk.infrastructure.notifications import SlackNotifier, OperatorDraftMessage
from draftdesk.shared.infrastructure.logging import get_correlation_id, get_logger, log_latency

logger = get_logger(__name__)
webhook_router = APIRouter(prefix="/webhook", tags=["Webhook"])
router = APIRouter(prefix="/drafting", tags=["Drafting"])

INQUIRY_TITLE = "お客様からの新規問い合わせ"
FALLBACK_TITLE = "お客様からの新規問い合わせ (エラー発生)"


# ========== Dependencies ==========

def get_orchestrator(request: Request) -> RAGOrchestrator:
    """Get the drafting pipeline from app state."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Drafting pipeline not available - LLM not configured"
        )
    return orchestrator


def get_notifier(request: Request) -> SlackNotifier:
    """Get the operator notifier from app state (unconfigured notifier if missing)."""
    notifier = getattr(request.app.state, "notifier", None)
    return notifier if notifier is not None else SlackNotifier()


def get_ingester(request: Request) -> DocumentIngester:
    ingester = getattr(request.app.state, "ingester", None)
    if ingester is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document ingestion not available"
        )
    return ingester


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def _request_id(request: Request) -> str:
    return (
        get_correlation_id()
        or getattr(request.state, "correlation_id", None)
        or f"req_{uuid.uuid4().hex[:12]}"
    )


async def _deliver(notifier: SlackNotifier, message: OperatorDraftMessage, request_id: str) -> None:
    """Send a draft to operators; delivery failures are reported, not raised."""
    try:
        with log_latency(logger, "operator_notification", request_id=request_id):
            await notifier.send_draft(message)
    except NotificationException as e:
        logger.error("Failed to send draft to operators", extra={"request_id": request_id, "error": str(e)})
        await notifier.send_error_notification(e, "Slack Notification")


# ========== Webhook Routes ==========

@webhook_router.post(
    "/channelio",
    response_model=WebhookResponse,
    summary="Receive a Channel.io inquiry and send an AI draft to operators",
    responses={
        400: {"description": "Inquiry text missing"},
        503: {"description": "Drafting pipeline not available"}
    }
)
async def channelio_webhook(
    request: Request,
    payload: ChannelioWebhookPayload,
    orchestrator: RAGOrchestrator = Depends(get_orchestrator),
    notifier: SlackNotifier = Depends(get_notifier),
    config: Settings = Depends(get_app_settings)
) -> WebhookResponse:
    """
    Draft a reply for an incoming chat inquiry.

    Signature verification happens upstream of this service.
    """
    request_id = _request_id(request)
    inquiry = payload.inquiry
    customer = payload.customer_context()

    if not inquiry:
        logger.warning("Webhook without inquiry text", extra={"request_id": request_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="問い合わせ内容が見つかりません")

    logger.info(
        "Inquiry received",
        extra={
            "request_id": request_id,
            "chat_id": payload.chat_id,
            "inquiry_preview": inquiry[:100]
        }
    )

    try:
        result = await orchestrator.run(inquiry, customer)
    except InvalidInputException:
        raise
    except Exception as e:
        # The pipeline absorbs its own failures; anything here is a bug, but
        # the operators still get something to work from.
        logger.exception("Drafting failed unexpectedly", extra={"request_id": request_id})
        await notifier.send_error_notification(e, f"channelio-webhook-{request_id}")
        await _deliver(notifier, OperatorDraftMessage(
            title=FALLBACK_TITLE,
            customer_name=customer.name or "",
            inquiry=inquiry,
            draft=config.fallback_draft,
            chat_link=payload.chat_id or None,
            channel_type=customer.channel_type,
            fallback=True
        ), request_id)
        return WebhookResponse(
            success=True,
            request_id=request_id,
            message="エラーが発生しましたが、フォールバック処理を完了しました",
            timestamp=datetime.now(timezone.utc).isoformat(),
            fallback=True,
            warning=True
        )

    fallback = not result.draft.grounded
    await _deliver(notifier, OperatorDraftMessage(
        title=FALLBACK_TITLE if fallback else INQUIRY_TITLE,
        customer_name=customer.name or "",
        inquiry=inquiry,
        draft=result.text,
        chat_link=payload.chat_id or None,
        channel_type=customer.channel_type,
        fallback=fallback
    ), request_id)

    return WebhookResponse(
        success=True,
        request_id=request_id,
        message="Webhookの処理が完了しました",
        timestamp=datetime.now(timezone.utc).isoformat(),
        fallback=fallback or result.retrieval.is_fallback
    )


@webhook_router.get("/channelio", summary="Webhook readiness probe")
async def channelio_webhook_ready(request: Request) -> dict:
    return {
        "status": "ok",
        "request_id": _request_id(request),
        "message": "Channelioのwebhookは問い合わせを受け付ける準備ができています",
        "pipeline_ready": getattr(request.app.state, "orchestrator", None) is not None,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


# ========== Operator Tooling Routes ==========

@router.post(
    "/respond",
    response_model=RespondResponse,
    summary="Generate a grounded draft for an inquiry",
    responses={400: {"description": "Blank inquiry"}, 503: {"description": "Pipeline not available"}}
)
async def respond(
    payload: RespondRequest,
    orchestrator: RAGOrchestrator = Depends(get_orchestrator)
) -> RespondResponse:
    """Draft a reply and return it with citations, retrieval source and stage timings."""
    customer = None
    if payload.customer_name or payload.inquiry_category:
        customer = CustomerContext(name=payload.customer_name, inquiry_category=payload.inquiry_category)

    result = await orchestrator.run(payload.query, customer)
    return RespondResponse.from_result(result)


@router.post(
    "/documents",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a knowledge document"
)
async def ingest_document(
    payload: IngestDocumentRequest,
    ingester: DocumentIngester = Depends(get_ingester),
    config: Settings = Depends(get_app_settings)
) -> IngestResponse:
    """Embed a document (optionally chunked) and add it to the knowledge store."""
    if payload.chunk:
        ids = await ingester.ingest_text(
            payload.content,
            dict(payload.metadata),
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            doc_id=payload.id
        )
    else:
        ids = await ingester.ingest_seeds([
            KnowledgeSeed(content=payload.content, metadata=dict(payload.metadata), id=payload.id)
        ])

    return IngestResponse(
        status="success",
        message=f"Successfully ingested {len(ids)} chunks",
        chunks_created=len(ids),
        document_ids=ids
    )
