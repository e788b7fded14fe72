"""
Drafting Domain Entities
========================

Domain entities for the inquiry drafting module.

Contains pure Python business objects for retrieval-augmented draft
generation: the passages used as grounding, the drafts produced from them
and the prompt that binds the two together.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Optional, List, Mapping, Sequence, Tuple, Union

from draftdesk.config import RetrievalSource, PromptMarker
from draftdesk.core import InvalidInputException

Scalar = Union[str, int, float, bool, None]
EmbeddingVector = Tuple[float, ...]


def require_inquiry(inquiry: Optional[str]) -> str:
    """Return the inquiry unchanged, or raise if it is missing or blank."""
    if inquiry is None or not str(inquiry).strip():
        raise InvalidInputException()
    return inquiry


@dataclass(frozen=True)
class RetrievedPassage:
    """
    Knowledge passage returned by similarity search.

    The embedding is dropped; ``score`` is the cosine similarity to the
    inquiry, or None for the default passages substituted on fallback.
    """
    content: str
    metadata: Mapping[str, Scalar] = field(default_factory=dict)
    score: Optional[float] = None
    id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", "unknown"))


# Generic guidance of the shop, used when retrieval produces nothing usable
DEFAULT_PASSAGES: Tuple[RetrievedPassage, ...] = (
    RetrievedPassage(
        content="ノンワイヤーブラのサイズは、アンダーバスト（胸の下の周囲）とカップサイズによって決まります。",
        metadata={"source": "default_guidance", "category": "sizing"},
    ),
    RetrievedPassage(
        content="一般的なサイズ表: A70, B70, C70, D70, A75, B75, C75, D75, A80, B80, C80, D80, A85, B85, C85, D85",
        metadata={"source": "default_guidance", "category": "sizing"},
    ),
    RetrievedPassage(
        content="サイズ選びで迷われた場合は、お気軽にチャットサポートでご相談ください。",
        metadata={"source": "default_guidance", "category": "support"},
    ),
)


@dataclass
class RetrievalOutcome:
    """
    Passages handed to synthesis, tagged with where they came from.

    ``passages`` is never empty.
    """
    passages: List[RetrievedPassage]
    source: str = RetrievalSource.KNOWLEDGE_BASE
    degraded_reason: Optional[str] = None

    def __post_init__(self):
        if not self.passages:
            raise ValueError("RetrievalOutcome requires at least one passage")

    @property
    def is_fallback(self) -> bool:
        return self.source == RetrievalSource.FALLBACK


@dataclass
class CustomerContext:
    """Who is asking, as reported by the chat platform."""
    name: Optional[str] = None
    email: Optional[str] = None
    channel_type: Optional[str] = None
    inquiry_category: Optional[str] = None


@dataclass
class Citation:
    """
    Citation for a generated draft.

    References the passage that was offered as grounding.
    """
    index: int
    source: str
    category: str
    snippet: str


@dataclass
class DraftAnswer:
    """
    Draft reply for operator review.

    ``text`` is never empty. ``grounded`` is False when the static apology
    was substituted for a failed generation.
    """
    text: str
    grounded: bool = True
    fallback_reason: Optional[str] = None
    citations: List[Citation] = field(default_factory=list)
    model: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.text or not self.text.strip():
            raise ValueError("DraftAnswer text must not be empty")


@dataclass
class StageTimings:
    """Per-stage wall-clock timings of one drafting run, in milliseconds."""
    retrieval_ms: float = 0.0
    synthesis_ms: float = 0.0
    total_ms: float = 0.0


@dataclass
class DraftResult:
    """Everything one drafting run produced."""
    draft: DraftAnswer
    retrieval: RetrievalOutcome
    timings: StageTimings

    @property
    def text(self) -> str:
        return self.draft.text


class DraftPromptBuilder:
    """
    Builds the grounded generation request.

    The system prompt carries the grounding rules, the numbered reference
    passages and the customer context; the inquiry is the user turn.
    """

    SYSTEM_PROMPT = """You are a polite and helpful customer support assistant for an online lingerie shop.
Write a draft reply to the customer's inquiry. A human operator will review it before it is sent.

Rules:
1. Use ONLY the information in the reference passages below.
2. If the passages do not contain the answer, say plainly that the information is not available
   (in Japanese: 「その情報は持ち合わせていません」) and suggest contacting staff.
3. Never invent product details, sizes, prices, dates or policies.
4. Reply in the customer's language; for Japanese use polite keigo.
5. Be concise."""

    NO_PASSAGES = "(no reference passages available)"

    @classmethod
    def format_passage(cls, index: int, passage: RetrievedPassage) -> str:
        """Number a passage and annotate it with its source metadata."""
        labels = [
            f"{key}: {passage.metadata[key]}"
            for key in ("source", "category")
            if passage.metadata.get(key) is not None
        ]
        header = f"[{index}]" + (f" ({', '.join(labels)})" if labels else "")
        return f"{header}\n{passage.content.strip()}"

    @classmethod
    def build_context(cls, passages: Sequence[RetrievedPassage]) -> str:
        if not passages:
            return cls.NO_PASSAGES
        return "\n\n".join(cls.format_passage(i, p) for i, p in enumerate(passages, 1))

    @classmethod
    def build_customer_section(cls, customer: Optional[CustomerContext]) -> str:
        if customer is None:
            return ""
        lines = []
        if customer.name:
            lines.append(f"- Name: {customer.name}")
        if customer.channel_type:
            lines.append(f"- Channel: {customer.channel_type}")
        if customer.inquiry_category:
            lines.append(f"- Inquiry category: {customer.inquiry_category}")
        if not lines:
            return ""
        return "Customer:\n" + "\n".join(lines)

    @classmethod
    def build_system_prompt(
        cls,
        passages: Sequence[RetrievedPassage],
        customer: Optional[CustomerContext] = None
    ) -> str:
        sections = [
            cls.SYSTEM_PROMPT,
            f"{PromptMarker.REFERENCE_OPEN}\n{cls.build_context(passages)}\n{PromptMarker.REFERENCE_CLOSE}",
        ]
        customer_section = cls.build_customer_section(customer)
        if customer_section:
            sections.append(customer_section)
        return "\n\n".join(sections)

    @classmethod
    def build_messages(
        cls,
        inquiry: str,
        passages: Sequence[RetrievedPassage],
        customer: Optional[CustomerContext] = None
    ) -> List[dict]:
        return [
            {"role": "system", "content": cls.build_system_prompt(passages, customer)},
            {"role": "user", "content": inquiry.strip()},
        ]

    @classmethod
    def build_citations(cls, passages: Sequence[RetrievedPassage]) -> List[Citation]:
        citations = []
        for i, passage in enumerate(passages, 1):
            content = passage.content.strip()
            snippet = content[:200] + "..." if len(content) > 200 else content
            citations.append(Citation(
                index=i,
                source=passage.source,
                category=str(passage.metadata.get("category", "")),
                snippet=snippet
            ))
        return citations
