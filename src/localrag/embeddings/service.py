"""Embedding backends for LocalRAG."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import List, Protocol, Sequence

import httpx

from localrag.errors import ProviderResponseError, ProviderUnavailableError
from localrag.models import EmbeddingVector

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "nomic-embed-text"
    base_url: str = "http://localhost:11434"
    dim: int = 768
    batch_size: int = 64
    timeout_seconds: float = 120.0
    use_model: bool = True
    normalize: bool = True


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    async def embed_documents(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        """Return one vector per text, in input order."""

    async def embed_query(self, text: str) -> EmbeddingVector:
        """Return embedding vector for a query string."""


def _normalize(vector: Sequence[float]) -> EmbeddingVector:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(float(value) / norm for value in vector)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding fallback used for testing."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    def _hash_to_vector(self, text: str) -> EmbeddingVector:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._config.normalize:
            return _normalize(vector)
        return tuple(vector)

    async def embed_documents(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        return [self._hash_to_vector(text) for text in texts]

    async def embed_query(self, text: str) -> EmbeddingVector:
        return self._hash_to_vector(text)


class OllamaEmbeddingBackend:
    """Embedding backend calling the Ollama ``/api/embed`` endpoint."""

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or EmbeddingConfig()
        self._transport = transport

    async def embed_documents(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        if not texts:
            return []
        vectors: List[EmbeddingVector] = []
        batch_size = max(1, self._config.batch_size)
        async with self._client() as client:
            for start in range(0, len(texts), batch_size):
                batch = list(texts[start : start + batch_size])
                vectors.extend(await self._embed_batch(client, batch))
        return vectors

    async def embed_query(self, text: str) -> EmbeddingVector:
        async with self._client() as client:
            (vector,) = await self._embed_batch(client, [text])
        return vector

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )

    async def _embed_batch(self, client: httpx.AsyncClient, batch: List[str]) -> List[EmbeddingVector]:
        payload = {"model": self._config.model, "input": batch}
        try:
            response = await client.post("/api/embed", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            LOGGER.error("Embedding request to %s failed: %s", self._config.base_url, exc)
            raise ProviderUnavailableError(
                f"Embedding provider request failed: {exc}",
                provider="embedding",
                cause=exc,
            ) from exc
        except ValueError as exc:
            raise ProviderResponseError(
                "Embedding provider returned invalid JSON",
                provider="embedding",
                cause=exc,
            ) from exc

        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(embeddings, list) or len(embeddings) != len(batch):
            LOGGER.error(
                "Embedding backend returned %s vectors for %d texts",
                len(embeddings) if isinstance(embeddings, list) else "no",
                len(batch),
            )
            raise ProviderResponseError(
                "Mismatch between number of texts and embedding vectors",
                provider="embedding",
            )
        if self._config.normalize:
            return [_normalize(vector) for vector in embeddings]
        return [tuple(float(value) for value in vector) for vector in embeddings]


def build_embedding_backend(
    config: EmbeddingConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> EmbeddingBackend:
    if not config.use_model:
        LOGGER.info("Embedding backend running in hash-only mode.")
        return HashEmbeddingBackend(config)
    return OllamaEmbeddingBackend(config, transport=transport)
