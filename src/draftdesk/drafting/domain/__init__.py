"""
Drafting Domain Layer
=====================

Framework-agnostic records and prompt logic for grounded draft generation.
"""

from draftdesk.drafting.domain.entities import (
    EmbeddingVector,
    RetrievedPassage,
    DEFAULT_PASSAGES,
    RetrievalOutcome,
    CustomerContext,
    Citation,
    DraftAnswer,
    StageTimings,
    DraftResult,
    DraftPromptBuilder,
    require_inquiry,
)

__all__ = [
    "EmbeddingVector",
    "RetrievedPassage",
    "DEFAULT_PASSAGES",
    "RetrievalOutcome",
    "CustomerContext",
    "Citation",
    "DraftAnswer",
    "StageTimings",
    "DraftResult",
    "DraftPromptBuilder",
    "require_inquiry",
]
