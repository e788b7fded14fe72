"""
Vector Store Infrastructure
============================

Knowledge document storage and cosine-similarity search.

Two implementations of the same repository interface:
- MilvusVectorStore: Zilliz Cloud (managed Milvus), COSINE metric
- InMemoryVectorStore: process-local store for development, previews and tests

Both rank by cosine similarity, drop hits below the score threshold and
return at most ``top_k`` results, most similar first.
"""

import math
from typing import List, Optional, Any, Sequence
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from pymilvus import MilvusClient

from draftdesk.core import VectorStoreException, ValidationException
from draftdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Document:
    """Knowledge document with its precomputed embedding."""
    id: str
    text: str
    embedding: Sequence[float]
    metadata: dict = field(default_factory=dict)


@dataclass
class SearchResult:
    """Result from vector search."""
    content: str
    metadata: dict
    score: float
    id: Optional[str] = None


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 for empty, zero-norm or mismatched vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0

    return max(min(dot / (na * nb), 1.0), -1.0)


def validate_search_args(score_threshold: float, top_k: int) -> None:
    """Reject thresholds outside [0, 1] and non-positive limits."""
    if not 0.0 <= score_threshold <= 1.0:
        raise ValidationException(
            "score_threshold must be within [0, 1]",
            details={"score_threshold": score_threshold}
        )
    if top_k < 1:
        raise ValidationException("top_k must be positive", details={"top_k": top_k})


class IVectorStore(ABC):
    """
    Interface for vector store operations.

    Following Interface Segregation and Dependency Inversion principles.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the vector store."""

    @abstractmethod
    async def get_document_count(self) -> int:
        """Get number of documents in the collection."""

    @abstractmethod
    async def add_documents(self, documents: List[Document]) -> None:
        """Add documents to the vector store."""

    @abstractmethod
    async def search(
        self,
        query_embedding: Sequence[float],
        top_k: int = 5,
        score_threshold: float = 0.0
    ) -> List[SearchResult]:
        """Search for similar documents."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete every document in the collection."""


class InMemoryVectorStore(IVectorStore):
    """
    Process-local vector store.

    Documents are read-only once added, so concurrent searches need no locking.
    """

    def __init__(self, documents: Optional[List[Document]] = None):
        self._documents: List[Document] = list(documents or [])

    async def initialize(self) -> None:
        """Nothing to connect to."""

    async def get_document_count(self) -> int:
        return len(self._documents)

    async def add_documents(self, documents: List[Document]) -> None:
        # Replace on id so re-seeding is idempotent
        incoming = {doc.id: doc for doc in documents}
        kept = [doc for doc in self._documents if doc.id not in incoming]
        self._documents = kept + list(incoming.values())

    async def search(
        self,
        query_embedding: Sequence[float],
        top_k: int = 5,
        score_threshold: float = 0.0
    ) -> List[SearchResult]:
        validate_search_args(score_threshold, top_k)

        scored = []
        for doc in self._documents:
            score = cosine_similarity(query_embedding, doc.embedding)
            if score >= score_threshold:
                scored.append((score, doc))

        # sorted() is stable: equal scores keep insertion order
        scored = sorted(scored, key=lambda pair: pair[0], reverse=True)[:top_k]
        return [
            SearchResult(
                content=doc.text,
                metadata=dict(doc.metadata),
                score=score,
                id=doc.id
            )
            for score, doc in scored
        ]

    async def clear(self) -> None:
        self._documents = []


class MilvusVectorStore(IVectorStore):
    """
    Zilliz Cloud (Managed Milvus) implementation of vector store.

    The collection is created with the COSINE metric, so the returned
    ``distance`` is the cosine similarity itself. Document text and metadata
    are stored as dynamic fields.
    """

    def __init__(
        self,
        uri: str,
        api_key: str,
        collection_name: str = "support_documents",
        dimension: int = 1536,
        client: Optional[Any] = None
    ):
        self._uri = uri
        self._api_key = api_key
        self._collection_name = collection_name
        self._dimension = dimension
        self._client: Optional[Any] = client
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize Zilliz Cloud client and collection."""
        if self._initialized:
            return

        if self._client is None:
            if not self._uri or not self._api_key:
                raise VectorStoreException("ZILLIZ_URI and ZILLIZ_API_KEY must be configured")
            try:
                self._client = MilvusClient(uri=self._uri, token=self._api_key)
            except Exception as e:
                raise VectorStoreException(f"Failed to connect to Milvus: {e}") from e

        try:
            if not self._client.has_collection(self._collection_name):
                self._client.create_collection(
                    collection_name=self._collection_name,
                    dimension=self._dimension,
                    primary_field_name="id",
                    id_type="string",
                    max_length=128,
                    vector_field_name="vector",
                    metric_type="COSINE",
                    auto_id=False
                )
                logger.info(
                    "Created Milvus collection",
                    extra={"collection": self._collection_name, "dimension": self._dimension}
                )
        except Exception as e:
            raise VectorStoreException(f"Failed to initialize Milvus: {e}") from e

        self._initialized = True

    async def get_document_count(self) -> int:
        """Get number of documents in the collection."""
        await self.initialize()

        try:
            stats = self._client.get_collection_stats(self._collection_name)
            return int(stats.get("row_count", 0))
        except Exception as e:
            raise VectorStoreException(f"Failed to count documents: {e}") from e

    async def add_documents(self, documents: List[Document]) -> None:
        """
        Add documents to the vector store.

        Args:
            documents: List of Document objects with embeddings

        Raises:
            VectorStoreException: If add operation fails
        """
        if not documents:
            return

        await self.initialize()

        data = [
            {
                "id": doc.id,
                "vector": list(doc.embedding),
                "text": doc.text,
                "metadata": doc.metadata
            }
            for doc in documents
        ]

        try:
            self._client.upsert(collection_name=self._collection_name, data=data)
        except Exception as e:
            raise VectorStoreException(f"Failed to add documents: {e}") from e

    async def search(
        self,
        query_embedding: Sequence[float],
        top_k: int = 5,
        score_threshold: float = 0.0
    ) -> List[SearchResult]:
        """
        Search for similar documents.

        Args:
            query_embedding: Query vector
            top_k: Number of results to return
            score_threshold: Minimum cosine similarity

        Returns:
            List of SearchResult objects, most similar first

        Raises:
            VectorStoreException: If search fails
        """
        validate_search_args(score_threshold, top_k)
        await self.initialize()

        try:
            results = self._client.search(
                collection_name=self._collection_name,
                data=[list(query_embedding)],
                limit=top_k,
                output_fields=["text", "metadata"],
                search_params={"metric_type": "COSINE"}
            )
        except Exception as e:
            raise VectorStoreException(f"Search failed: {e}") from e

        hits = results[0] if results else []
        formatted = []
        for hit in hits:
            score = float(hit["distance"])
            if score < score_threshold:
                continue
            entity = hit.get("entity", {})
            formatted.append(SearchResult(
                content=entity.get("text", ""),
                metadata=dict(entity.get("metadata") or {}),
                score=score,
                id=hit.get("id")
            ))

        formatted.sort(key=lambda r: r.score, reverse=True)
        return formatted

    async def clear(self) -> None:
        """Delete every document in the collection."""
        await self.initialize()

        try:
            self._client.delete(collection_name=self._collection_name, filter='id != ""')
        except Exception as e:
            raise VectorStoreException(f"Failed to clear collection: {e}") from e
