"""
Drafting External Service Adapters
====================================

Adapters for external services (LLM, Vector Store) used by the drafting module.

Implements the interfaces defined in the application layer using concrete
infrastructure clients, converting loosely typed payloads into domain
records at this boundary.
"""

import uuid
from typing import List, Optional, Sequence

from draftdesk.config import Settings, KnowledgeStoreBackend
from draftdesk.core import VectorStoreException
from draftdesk.drafting.application import (
    IEmbeddingProvider,
    IKnowledgeStore,
    RetrievalPipeline,
    AnswerSynthesizer,
    RAGOrchestrator,
)
from draftdesk.drafting.domain import EmbeddingVector, RetrievedPassage
from draftdesk.drafting.infrastructure.knowledge_sources import KnowledgeSeed, load_seeds
from draftdesk.infrastructure.llm import ILLMClient, create_llm_client
from draftdesk.infrastructure.vectorstore import (
    IVectorStore, InMemoryVectorStore, MilvusVectorStore, Document
)
from draftdesk.shared.infrastructure.grafana import GrafanaOTLPExporter
from draftdesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


class EmbeddingProviderAdapter(IEmbeddingProvider):
    """
    Adapter that wraps the infrastructure LLM client.

    Implements the application layer IEmbeddingProvider interface;
    ProviderUnavailableException from the client passes through untouched.
    """

    def __init__(self, client: ILLMClient):
        self._client = client

    async def embed(self, text: str) -> EmbeddingVector:
        result = await self._client.generate_embedding(text)
        return result.embedding


class KnowledgeStoreAdapter(IKnowledgeStore):
    """
    Adapter that wraps the infrastructure vector store.

    Search is best-effort: connectivity failures are logged and reported as
    an empty result.
    """

    def __init__(self, store: IVectorStore):
        self._store = store

    async def search(
        self,
        query: EmbeddingVector,
        threshold: float,
        limit: int
    ) -> List[RetrievedPassage]:
        try:
            results = await self._store.search(query, top_k=limit, score_threshold=threshold)
        except VectorStoreException as e:
            logger.warning("Knowledge store search failed, treating as empty", extra={"error": str(e)})
            return []

        return [
            RetrievedPassage(
                content=r.content,
                metadata=r.metadata,
                score=r.score,
                id=str(r.id) if r.id is not None else None
            )
            for r in results
            if r.content
        ]


class DocumentIngester:
    """
    Service for ingesting knowledge documents into the vector store.

    Handles:
    - Text chunking
    - Embedding generation
    - Vector storage

    Embedding failures propagate: ingestion is an offline operation and a
    half-seeded store is worse than a loud failure.
    """

    def __init__(self, embedding_provider: IEmbeddingProvider, vector_store: IVectorStore):
        self._embedder = embedding_provider
        self._vector_store = vector_store

    async def ingest_seeds(self, seeds: Sequence[KnowledgeSeed]) -> List[str]:
        """
        Embed and store seeds.

        Returns:
            Ids of the stored documents, in input order
        """
        if not seeds:
            return []

        documents = []
        with log_latency(logger, "embed_documents", document_count=len(seeds)):
            for seed in seeds:
                embedding = await self._embedder.embed(seed.content)
                documents.append(Document(
                    id=seed.id or str(uuid.uuid4()),
                    text=seed.content,
                    embedding=embedding,
                    metadata=dict(seed.metadata)
                ))

        await self._vector_store.add_documents(documents)
        return [doc.id for doc in documents]

    async def ingest_text(
        self,
        text: str,
        metadata: dict,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        doc_id: Optional[str] = None
    ) -> List[str]:
        """
        Ingest plain text, split into overlapping chunks.

        Args:
            text: Text to ingest
            metadata: Metadata dict (source, category, etc.)
            chunk_size: Target chunk size
            chunk_overlap: Overlap between chunks
            doc_id: Base id; chunk ids are ``{doc_id}-{n}``

        Returns:
            Ids of the stored chunks
        """
        chunks = self.chunk_text(text, chunk_size, chunk_overlap)
        base_id = doc_id or str(uuid.uuid4())
        seeds = [
            KnowledgeSeed(
                content=chunk,
                metadata={**metadata, "chunk_index": index},
                id=f"{base_id}-{index}" if len(chunks) > 1 else base_id
            )
            for index, chunk in enumerate(chunks)
        ]
        return await self.ingest_seeds(seeds)

    @staticmethod
    def chunk_text(
        text: str,
        chunk_size: int,
        chunk_overlap: int
    ) -> List[str]:
        """
        Split text into chunks for embedding.

        Prefers paragraph, then line, then sentence boundaries (including the
        Japanese full stop) in the second half of each window.
        """
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")

        chunks = []
        start = 0
        text_length = len(text)

        while start < text_length:
            end = start + chunk_size

            if end < text_length:
                for separator in ("\n\n", "\n", "。", ". "):
                    brk = text.rfind(separator, start, end)
                    if brk > start + chunk_size // 2:
                        end = brk + len(separator)
                        break

            chunk = text[start:end].strip()
            if chunk:
                chunks.append(chunk)

            # Always advance, even when a separator cut the window short
            start = max(end - chunk_overlap, start + 1) if end < text_length else text_length

        return chunks


def create_vector_store(config: Settings) -> IVectorStore:
    """Vector store for the configured backend."""
    if config.knowledge_store_backend == KnowledgeStoreBackend.MILVUS:
        return MilvusVectorStore(
            uri=config.zilliz_uri,
            api_key=config.zilliz_api_key,
            collection_name=config.milvus_collection_name,
            dimension=config.embedding_dimension
        )
    return InMemoryVectorStore()


async def seed_vector_store(config: Settings, llm_client: ILLMClient, store: IVectorStore) -> int:
    """Seed the store from ``knowledge_seed_path``; returns the number of documents stored."""
    if not config.knowledge_seed_path:
        return 0

    seeds = load_seeds(config.knowledge_seed_path)
    ingester = DocumentIngester(EmbeddingProviderAdapter(llm_client), store)
    ids = await ingester.ingest_seeds(seeds)
    logger.info(
        "Knowledge store seeded",
        extra={"path": str(config.knowledge_seed_path), "document_count": len(ids)}
    )
    return len(ids)


def build_orchestrator(
    config: Settings,
    llm_client: Optional[ILLMClient] = None,
    vector_store: Optional[IVectorStore] = None,
    metrics: Optional[GrafanaOTLPExporter] = None
) -> RAGOrchestrator:
    """
    Wire the drafting pipeline from settings.

    Any collaborator can be passed in explicitly; the rest are built from
    ``config``.
    """
    llm_client = llm_client or create_llm_client(config, metrics_exporter=metrics)
    vector_store = vector_store or create_vector_store(config)

    retrieval = RetrievalPipeline(
        embedding_provider=EmbeddingProviderAdapter(llm_client),
        knowledge_store=KnowledgeStoreAdapter(vector_store),
        threshold=config.retrieval_threshold,
        limit=config.retrieval_limit
    )
    synthesizer = AnswerSynthesizer(
        generation_client=llm_client,
        temperature=config.llm_temperature,
        max_tokens=config.llm_max_tokens,
        fallback_text=config.fallback_draft,
        timeout_seconds=config.pipeline_timeout_seconds
    )
    return RAGOrchestrator(retrieval, synthesizer, metrics=metrics)
