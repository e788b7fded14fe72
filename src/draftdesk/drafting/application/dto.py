"""
Drafting Application DTOs
==========================

Data Transfer Objects for the drafting API layer.

Pydantic models for request/response validation.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict, Union

from draftdesk.drafting.domain import CustomerContext, DraftResult

MetadataValue = Union[str, int, float, bool, None]


# ========== Channel.io Webhook Payload ==========

class ChannelioMessage(BaseModel):
    model_config = ConfigDict(extra="allow")
    text: Optional[str] = None


class ChannelioUser(BaseModel):
    model_config = ConfigDict(extra="allow")
    name: Optional[str] = None
    email: Optional[str] = None


class ChannelioChat(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: Optional[str] = None


class ChannelioSource(BaseModel):
    model_config = ConfigDict(extra="allow")
    type: Optional[str] = None


class ChannelioWebhookPayload(BaseModel):
    """Subset of the Channel.io webhook body the drafting flow reads."""
    model_config = ConfigDict(extra="allow")

    message: Optional[ChannelioMessage] = None
    user: Optional[ChannelioUser] = None
    chat: Optional[ChannelioChat] = None
    source: Optional[ChannelioSource] = None
    inquiry_category: Optional[str] = None

    @property
    def inquiry(self) -> str:
        return (self.message.text if self.message and self.message.text else "").strip()

    @property
    def chat_id(self) -> str:
        return self.chat.id if self.chat and self.chat.id else ""

    def customer_context(self) -> CustomerContext:
        return CustomerContext(
            name=(self.user.name if self.user and self.user.name else "不明な顧客"),
            email=(self.user.email if self.user else None) or None,
            channel_type=(self.source.type if self.source and self.source.type else "Channelio"),
            inquiry_category=self.inquiry_category or "一般的な問い合わせ"
        )


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the chat platform."""
    success: bool
    request_id: str
    message: str
    timestamp: str
    fallback: bool = False
    warning: bool = False


# ========== Request DTOs ==========

class RespondRequest(BaseModel):
    """Request model for draft generation."""
    query: str = Field(..., min_length=1, description="Customer inquiry")
    customer_name: Optional[str] = Field(None, description="Customer display name")
    inquiry_category: Optional[str] = Field(None, description="Inquiry category")

    @field_validator("query")
    @classmethod
    def validate_query_length(cls, v: str) -> str:
        """Ensure query is not too long."""
        if len(v) > 2000:
            raise ValueError("Query too long (max 2000 characters)")
        return v


class IngestDocumentRequest(BaseModel):
    """Request model for single-document ingestion."""
    content: str = Field(..., min_length=1, description="Document text")
    metadata: Dict[str, MetadataValue] = Field(default_factory=dict, description="source, category, ...")
    id: Optional[str] = Field(None, description="Document id (generated when omitted)")
    chunk: bool = Field(default=False, description="Split long text into overlapping chunks")


# ========== Response DTOs ==========

class CitationInfo(BaseModel):
    """Citation information in API response."""
    index: int
    source: str
    category: str
    snippet: str


class StageTimingsInfo(BaseModel):
    retrieval_ms: float
    synthesis_ms: float
    total_ms: float


class RespondResponse(BaseModel):
    """Response model for draft generation."""
    response: str
    grounded: bool
    fallback_reason: Optional[str] = None
    retrieval_source: str
    degraded_reason: Optional[str] = None
    citations: List[CitationInfo]
    timings: StageTimingsInfo

    @classmethod
    def from_result(cls, result: DraftResult) -> "RespondResponse":
        return cls(
            response=result.draft.text,
            grounded=result.draft.grounded,
            fallback_reason=result.draft.fallback_reason,
            retrieval_source=result.retrieval.source,
            degraded_reason=result.retrieval.degraded_reason,
            citations=[
                CitationInfo(index=c.index, source=c.source, category=c.category, snippet=c.snippet)
                for c in result.draft.citations
            ],
            timings=StageTimingsInfo(
                retrieval_ms=result.timings.retrieval_ms,
                synthesis_ms=result.timings.synthesis_ms,
                total_ms=result.timings.total_ms
            )
        )


class IngestResponse(BaseModel):
    """Response model for document ingestion."""
    status: str
    message: str
    chunks_created: int = 0
    document_ids: List[str] = Field(default_factory=list)
