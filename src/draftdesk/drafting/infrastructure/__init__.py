"""
Drafting Infrastructure Layer
==============================

Infrastructure implementations for the drafting module.

Contains:
- External: adapters over the LLM client and vector store, document ingestion,
  pipeline wiring
- Knowledge sources: YAML / CSV / FAQ loaders
"""

from draftdesk.drafting.infrastructure.external import (
    EmbeddingProviderAdapter,
    KnowledgeStoreAdapter,
    DocumentIngester,
    create_vector_store,
    seed_vector_store,
    build_orchestrator,
)
from draftdesk.drafting.infrastructure.knowledge_sources import (
    KnowledgeSeed,
    load_seeds,
    parse_faq_text,
)

__all__ = [
    "EmbeddingProviderAdapter",
    "KnowledgeStoreAdapter",
    "DocumentIngester",
    "create_vector_store",
    "seed_vector_store",
    "build_orchestrator",
    "KnowledgeSeed",
    "load_seeds",
    "parse_faq_text",
]
