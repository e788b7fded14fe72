"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="draftdesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== OpenAI ==========
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key for embeddings and chat completions"
    )
    openai_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single OpenAI request",
        gt=0
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses (build/preview environments, no API calls)"
    )

    # ========== Embeddings & Retrieval ==========
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model"
    )
    embedding_dimension: int = Field(
        default=1536,
        description="Embedding vector dimension",
        ge=8
    )
    retrieval_threshold: float = Field(
        default=0.7,
        description="Minimum cosine similarity for a passage to be used as grounding",
        ge=0.0,
        le=1.0
    )
    retrieval_limit: int = Field(
        default=5,
        description="Number of passages to retrieve",
        ge=1,
        le=20
    )

    # ========== Knowledge Store ==========
    knowledge_store_backend: str = Field(
        default="memory",
        description="Knowledge store backend (milvus or memory)"
    )
    knowledge_seed_path: Optional[Path] = Field(
        default=None,
        description="YAML/CSV/FAQ file used to seed the in-memory store at startup"
    )
    zilliz_uri: str = Field(
        default="",
        description="Zilliz Cloud cluster URI (e.g., https://inxxx.aws-us-west-2.vectordb.zillizcloud.com)"
    )
    zilliz_api_key: str = Field(
        default="",
        description="Zilliz Cloud API key"
    )
    milvus_collection_name: str = Field(
        default="support_documents",
        description="Milvus collection name"
    )
    chunk_size: int = Field(
        default=1000,
        description="Character size for document chunks",
        ge=100
    )
    chunk_overlap: int = Field(
        default=200,
        description="Overlap between document chunks",
        ge=0
    )

    # ========== Generation ==========
    llm_model: str = Field(
        default="gpt-3.5-turbo",
        description="Chat model for draft generation"
    )
    llm_temperature: float = Field(
        default=0.3,
        description="Temperature for draft generation",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=500,
        description="Max tokens for draft generation",
        ge=1,
        le=8000
    )
    pipeline_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Upper bound for the generation call; None disables it",
        gt=0
    )
    fallback_draft: str = Field(
        default=(
            "申し訳ありませんが、技術的な問題により回答を生成できませんでした。"
            "スタッフが直接対応いたします。"
        ),
        description="Draft handed to operators when no automated answer could be generated"
    )

    # ========== Slack Integration ==========
    slack_bot_token: Optional[str] = Field(
        default=None,
        description="Slack bot token (chat.postMessage)"
    )
    slack_channel_id: Optional[str] = Field(
        default=None,
        description="Slack channel ID for operator drafts"
    )
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack incoming webhook URL (used when no bot token is set)"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-ap-south-1.grafana.net)"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Grafana API key for OTLP authentication"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Grafana instance ID for OTLP authentication"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("knowledge_store_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Ensure the knowledge store backend is supported."""
        v = v.lower()
        if v not in KNOWLEDGE_STORE_BACKENDS:
            raise ValueError(f"knowledge_store_backend must be one of {KNOWLEDGE_STORE_BACKENDS}")
        return v

    @model_validator(mode="after")
    def validate_chunking(self) -> "Settings":
        """Chunk overlap must stay below half the chunk size so chunking always advances."""
        if self.chunk_overlap >= self.chunk_size // 2:
            raise ValueError("chunk_overlap must be smaller than half of chunk_size")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class KnowledgeStoreBackend(str):
    """Supported knowledge store backends."""
    MILVUS = "milvus"
    MEMORY = "memory"


class RetrievalSource(str):
    """Where the grounding passages of a draft came from."""
    KNOWLEDGE_BASE = "knowledge_base"
    FALLBACK = "fallback"


class DegradationReason(str):
    """Why retrieval fell back to the default passage set."""
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    STORE_UNAVAILABLE = "store_unavailable"
    NO_MATCHES = "no_matches"


class PromptMarker(str):
    """Delimiters around the reference passages in the draft system prompt."""
    REFERENCE_OPEN = "<reference_passages>"
    REFERENCE_CLOSE = "</reference_passages>"


KNOWLEDGE_STORE_BACKENDS = [KnowledgeStoreBackend.MILVUS, KnowledgeStoreBackend.MEMORY]


# Global settings instance
settings = get_settings()
