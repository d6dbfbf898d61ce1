"""Retrieval orchestration built on top of the vector store."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import List, Protocol, Sequence

from localrag.embeddings.service import EmbeddingBackend
from localrag.embeddings.store import VectorStore
from localrag.errors import InputError
from localrag.metrics.observability import PipelineMetrics, get_logger
from localrag.models import RetrievalResult


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for retrieval."""

    top_k: int = 4
    max_top_k: int | None = 20


class Retriever(Protocol):
    """Retrieve relevant chunks for a query string."""

    async def retrieve(self, query: str, k: int | None = None) -> Sequence[RetrievalResult]:
        """Return at most ``k`` results ordered by ascending distance."""


def validate_k(k: object) -> int:
    if isinstance(k, bool) or not isinstance(k, int) or k < 1:
        raise InputError(f"k must be a positive integer, got {k!r}")
    return k


class ChromaRetriever:
    """Retriever backed by a Chroma vector store."""

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingBackend,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._config = config or RetrievalConfig()
        self._logger = get_logger("retrieval")

    async def retrieve(self, query: str, k: int | None = None) -> Sequence[RetrievalResult]:
        limit = validate_k(self._config.top_k if k is None else k)
        if self._config.max_top_k:
            limit = min(limit, self._config.max_top_k)

        start = time.perf_counter()
        available = await asyncio.to_thread(self._store.count)
        if available == 0:
            self._logger.info("retrieval.empty_collection", collection=self._store.collection_name)
            return []

        vector = await self._embedder.embed_query(query)
        results: List[RetrievalResult] = list(
            await asyncio.to_thread(self._store.query, vector, limit, available=available)
        )
        results = sorted(results, key=lambda result: result.distance)[:limit]

        duration = time.perf_counter() - start
        PipelineMetrics.observe_retrieval(duration, len(results), (r.similarity for r in results))
        self._logger.info(
            "retrieval.complete",
            chunk_count=len(results),
            duration_seconds=duration,
            top_k=limit,
        )
        return results
