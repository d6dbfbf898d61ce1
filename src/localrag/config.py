"""Runtime configuration for the LocalRAG services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_EXTENSIONS: tuple[str, ...] = (".pdf",)


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="localrag_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    # Vector store
    chroma_url: str | None = "http://localhost:8000"
    chroma_persist_dir: Path = Path("./.chroma")
    collection_name: str = "my_documents"
    upsert_batch_size: int = 256

    # Model provider (Ollama)
    ollama_url: str = "http://localhost:11434"
    embedding_model: str = "nomic-embed-text"
    # Only used by the hash embedding backend
    embedding_dim: int = 768
    embedding_batch_size: int = 64
    llm_model: str = "mistral"
    llm_temperature: float = 0.7
    request_timeout_seconds: float = 120.0

    use_model_embeddings: bool = True
    use_model_generator: bool = True

    # Corpus
    documents_dir: Path = Path("/app/documents")
    document_extensions: tuple[str, ...] | str = _DEFAULT_EXTENSIONS
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Retrieval
    top_k: int = 4
    max_top_k: int = 20

    # CORS
    cors_allow_origins: tuple[str, ...] = ()  # e.g., ("*") to allow all
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    @model_validator(mode="after")
    def _check_chunking(self) -> "Settings":
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size")
        if self.top_k < 1 or self.max_top_k < self.top_k:
            raise ValueError("top_k must be >= 1 and not larger than max_top_k")
        return self

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def document_extensions_tuple(self) -> tuple[str, ...]:
        value = self.document_extensions
        if isinstance(value, str):
            value = tuple(p.strip() for p in value.split(",") if p.strip())
        normalized = tuple(ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value)
        return normalized or _DEFAULT_EXTENSIONS


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
