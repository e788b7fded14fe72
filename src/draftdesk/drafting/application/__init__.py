"""
Drafting Application Layer
===========================

Application layer for the inquiry drafting module.

Contains:
- Services: retrieval, synthesis and their orchestration
- DTOs: Data transfer objects for API serialization
"""

from draftdesk.drafting.application.dto import (
    ChannelioWebhookPayload,
    WebhookResponse,
    RespondRequest,
    RespondResponse,
    IngestDocumentRequest,
    IngestResponse,
    CitationInfo,
    StageTimingsInfo,
)
from draftdesk.drafting.application.services import (
    IEmbeddingProvider,
    IKnowledgeStore,
    IGenerationClient,
    IPipelineMetrics,
    RetrievalPipeline,
    AnswerSynthesizer,
    RAGOrchestrator,
)

__all__ = [
    # DTOs
    "ChannelioWebhookPayload",
    "WebhookResponse",
    "RespondRequest",
    "RespondResponse",
    "IngestDocumentRequest",
    "IngestResponse",
    "CitationInfo",
    "StageTimingsInfo",
    # Services
    "RetrievalPipeline",
    "AnswerSynthesizer",
    "RAGOrchestrator",
    # Collaborator Interfaces
    "IEmbeddingProvider",
    "IKnowledgeStore",
    "IGenerationClient",
    "IPipelineMetrics",
]
