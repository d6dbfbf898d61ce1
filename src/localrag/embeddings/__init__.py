"""Embedding services and vector storage."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    HashEmbeddingBackend,
    OllamaEmbeddingBackend,
    build_embedding_backend,
)
from .store import ChromaVectorStore, VectorStore, VectorStoreConfig, build_chroma_client, records_from_chunks

__all__ = [
    "EmbeddingBackend",
    "EmbeddingConfig",
    "HashEmbeddingBackend",
    "OllamaEmbeddingBackend",
    "build_embedding_backend",
    "ChromaVectorStore",
    "VectorStore",
    "VectorStoreConfig",
    "build_chroma_client",
    "records_from_chunks",
]
