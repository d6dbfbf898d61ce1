"""Retrieval components."""

from .service import ChromaRetriever, RetrievalConfig, Retriever, validate_k

__all__ = ["ChromaRetriever", "RetrievalConfig", "Retriever", "validate_k"]
