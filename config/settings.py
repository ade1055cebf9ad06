"""Runtime settings for the helpdesk agents.

Provides a single pydantic model covering the language-model provider, the
knowledge base crawl/index parameters and logging.
"""

import os
import logging
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_KNOWLEDGE_BASE_URL = "https://ajuda.infinitepay.io/pt-BR"

# Value shipped in the sample .env; never a real key.
PLACEHOLDER_API_KEY = "sua-chave-aqui"


class EmbeddingProviderType(str, Enum):
    """Supported embedding backends."""
    OPENAI = "openai"
    LOCAL = "local"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    """Application settings."""

    # Language model
    openai_api_key: str = Field(default="", description="OpenAI API key; empty means degraded mode")
    openai_model: str = Field(default="gpt-3.5-turbo", description="Chat completion model")
    openai_temperature: float = Field(default=0.1, description="Sampling temperature")
    openai_max_tokens: int = Field(default=100, description="Completion token limit")
    llm_timeout_seconds: float = Field(default=30.0, description="Timeout for model and embedding calls")

    # Knowledge base
    knowledge_base_urls: List[str] = Field(
        default_factory=lambda: [DEFAULT_KNOWLEDGE_BASE_URL],
        description="Seed URLs crawled to build the knowledge index",
    )
    knowledge_chunk_size: int = Field(default=1000, description="Chunk window in characters")
    knowledge_chunk_overlap: int = Field(default=200, description="Characters shared by consecutive chunks")
    knowledge_top_k: int = Field(default=3, description="Chunks retrieved per question")
    embedding_model: str = Field(default="text-embedding-ada-002", description="Remote embedding model")
    embedding_provider: EmbeddingProviderType = Field(default=EmbeddingProviderType.OPENAI)
    local_embedding_model: str = Field(default="all-MiniLM-L6-v2", description="sentence-transformers model")
    build_index_on_startup: bool = Field(default=True, description="Crawl and index when the API starts")

    # Crawler
    crawl_max_pages: int = Field(default=50, description="Page cap per crawl call")
    crawl_timeout_ms: int = Field(default=10000, description="Per-page fetch timeout")

    # Logging / presentation
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    personality_seed: Optional[int] = Field(default=None, description="Seed for response decoration")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000)

    @field_validator("knowledge_chunk_size", "knowledge_top_k", "crawl_max_pages", "crawl_timeout_ms")
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("knowledge_chunk_overlap")
    @classmethod
    def _overlap_not_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("chunk overlap cannot be negative")
        return value

    @field_validator("knowledge_base_urls")
    @classmethod
    def _strip_urls(cls, value: List[str]) -> List[str]:
        return [url.strip() for url in value if url and url.strip()]

    @model_validator(mode="after")
    def _overlap_smaller_than_chunk(self) -> "Settings":
        if self.knowledge_chunk_overlap >= self.knowledge_chunk_size:
            raise ValueError(
                f"knowledge_chunk_overlap ({self.knowledge_chunk_overlap}) must be smaller "
                f"than knowledge_chunk_size ({self.knowledge_chunk_size})"
            )
        return self

    @property
    def is_llm_configured(self) -> bool:
        """True when a usable OpenAI key is present."""
        key = self.openai_api_key.strip()
        return bool(key) and key != PLACEHOLDER_API_KEY

    @property
    def crawl_timeout_seconds(self) -> float:
        return self.crawl_timeout_ms / 1000.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        seed = os.getenv("PERSONALITY_SEED")
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
            openai_temperature=float(os.getenv("OPENAI_TEMPERATURE", "0.1")),
            openai_max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", "100")),
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "30")),
            knowledge_base_urls=_env_list("KNOWLEDGE_BASE_URLS", [DEFAULT_KNOWLEDGE_BASE_URL]),
            knowledge_chunk_size=int(os.getenv("KNOWLEDGE_CHUNK_SIZE", "1000")),
            knowledge_chunk_overlap=int(os.getenv("KNOWLEDGE_CHUNK_OVERLAP", "200")),
            knowledge_top_k=int(os.getenv("KNOWLEDGE_TOP_K", "3")),
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-ada-002"),
            embedding_provider=os.getenv("EMBEDDING_PROVIDER", "openai").strip().lower(),
            local_embedding_model=os.getenv("LOCAL_EMBEDDING_MODEL", "all-MiniLM-L6-v2"),
            build_index_on_startup=_env_bool("KNOWLEDGE_BUILD_ON_STARTUP", True),
            crawl_max_pages=int(os.getenv("CRAWL_MAX_PAGES", "50")),
            crawl_timeout_ms=int(os.getenv("CRAWL_TIMEOUT_MS", "10000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON", False),
            personality_seed=int(seed) if seed else None,
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "3000")),
        )


def load_settings() -> Settings:
    """Read settings from the current environment."""
    settings = Settings.from_env()
    if not settings.is_llm_configured:
        logger.warning("OPENAI_API_KEY not configured; agents will run in degraded mode")
    return settings
