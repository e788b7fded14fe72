"""
draftdesk - Main Application
=============================

Drafts grounded replies to customer-support chat inquiries.

Flow:
- Channel.io webhook delivers an inquiry
- Retrieval: embed the inquiry, search the knowledge base (fallback passages
  when degraded)
- Synthesis: grounded draft via the chat model (apology text when it fails)
- Delivery: inquiry + draft posted to the operator Slack channel for review

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and prompt logic
- Infrastructure: LLM, vector store, Slack
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from draftdesk.config import Settings, get_settings, KnowledgeStoreBackend
from draftdesk.core import ApplicationException
from draftdesk.drafting.infrastructure import (
    EmbeddingProviderAdapter,
    DocumentIngester,
    build_orchestrator,
    create_vector_store,
    seed_vector_store,
)
from draftdesk.drafting.interfaces import drafting_router, webhook_router
from draftdesk.infrastructure.llm import ILLMClient, create_llm_client
from draftdesk.infrastructure.notifications import SlackNotifier
from draftdesk.infrastructure.vectorstore import IVectorStore
from draftdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from draftdesk.shared.infrastructure.grafana import get_grafana_exporter, init_grafana_exporter
from draftdesk.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


def create_app(
    config: Optional[Settings] = None,
    llm_client: Optional[ILLMClient] = None,
    vector_store: Optional[IVectorStore] = None,
    notifier: Optional[SlackNotifier] = None,
    configure_logging: bool = True
) -> FastAPI:
    """
    Build the FastAPI application.

    Collaborators passed in are used as-is; the rest are built from settings
    during startup.
    """
    config = config or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """
        Application lifespan manager.

        STARTUP:
        1. Setup structured logging
        2. Initialize metrics exporter
        3. Initialize LLM client
        4. Initialize and seed the knowledge store
        5. Wire the drafting pipeline and Slack notifier

        SHUTDOWN:
        1. Close Slack client
        """
        if configure_logging:
            setup_logging(level=config.log_level, environment=config.environment)
        logger.info("Starting draftdesk", extra={
            "version": config.app_version,
            "environment": config.environment
        })

        if config.grafana_host and config.grafana_api_key and config.grafana_instance_id:
            metrics = init_grafana_exporter(
                host=config.grafana_host,
                api_key=config.grafana_api_key,
                instance_id=config.grafana_instance_id
            )
            logger.info("Grafana OTLP exporter initialized")
        else:
            metrics = get_grafana_exporter()
            logger.info("Grafana OTLP exporter not configured - metrics will not be exported")
        app.state.settings = config
        app.state.orchestrator = None
        app.state.ingester = None

        client = llm_client
        if client is None:
            try:
                client = create_llm_client(config, metrics_exporter=metrics)
            except ApplicationException as e:
                logger.warning(f"LLM client initialization failed: {e}")

        store = vector_store or create_vector_store(config)
        try:
            await store.initialize()
            if client is not None and config.knowledge_store_backend == KnowledgeStoreBackend.MEMORY:
                await seed_vector_store(config, client, store)
        except ApplicationException as e:
            # Search degrades to fallback passages; drafting keeps working
            logger.warning(f"Knowledge store not ready: {e}")
        app.state.vector_store = store

        if client is not None:
            app.state.orchestrator = build_orchestrator(
                config, llm_client=client, vector_store=store, metrics=metrics
            )
            app.state.ingester = DocumentIngester(EmbeddingProviderAdapter(client), store)
        else:
            logger.warning("Drafting pipeline not available - no LLM client")
        app.state.llm_client = client

        app.state.notifier = notifier or SlackNotifier(
            bot_token=config.slack_bot_token,
            channel_id=config.slack_channel_id,
            webhook_url=config.slack_webhook_url,
            timeout_seconds=config.slack_timeout_seconds
        )
        if not app.state.notifier.is_configured:
            logger.warning("Slack not configured - drafts will not be delivered to operators")

        logger.info("draftdesk started successfully")

        yield

        logger.info("Shutting down draftdesk")
        await app.state.notifier.close()

    app = FastAPI(
        title="draftdesk API",
        description=(
            "Retrieval-augmented reply drafts for customer-support chat inquiries. "
            "Drafts are delivered to operators for review, never to customers directly."
        ),
        version=config.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    # Added last so it runs first and LoggingMiddleware sees the correlation ID
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(webhook_router)
    app.include_router(drafting_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Health check endpoint for load balancers and orchestrators.

        Reports LLM client availability, knowledge store size and Slack status.
        """
        state = request.app.state
        checks = {
            "llm_client": "available" if getattr(state, "llm_client", None) else "not_configured",
            "knowledge_store": "not_initialized",
            "slack": "configured" if getattr(state, "notifier", None) and state.notifier.is_configured
            else "not_configured",
        }

        store = getattr(state, "vector_store", None)
        if store is not None:
            try:
                count = await store.get_document_count()
                checks["knowledge_store"] = f"available ({count} documents)"
            except ApplicationException as e:
                checks["knowledge_store"] = f"error: {e}"

        return {
            "status": "healthy",
            "version": config.app_version,
            "environment": config.environment,
            "checks": checks
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": config.app_name,
            "version": config.app_version,
            "docs": "/docs",
            "health": "/health",
            "endpoints": [
                "POST /webhook/channelio - Draft a reply for a chat inquiry",
                "GET /webhook/channelio - Webhook readiness",
                "POST /drafting/respond - Draft with citations and timings",
                "POST /drafting/documents - Add a knowledge document"
            ]
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "draftdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
