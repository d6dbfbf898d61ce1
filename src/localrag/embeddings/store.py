"""Chroma-backed vector store adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Protocol, Sequence, TypeVar

import chromadb
import httpx
from chromadb.api import ClientAPI
from chromadb.api.models.Collection import Collection
from chromadb.errors import NotFoundError

from localrag.errors import ProviderUnavailableError
from localrag.models import Chunk, EmbeddingVector, RetrievalResult, VectorRecord

LOGGER = logging.getLogger(__name__)

COSINE_SPACE = {"hnsw:space": "cosine"}

T = TypeVar("T")


@dataclass(frozen=True)
class VectorStoreConfig:
    """Configuration for the Chroma vector store."""

    collection_name: str = "my_documents"
    url: str | None = "http://localhost:8000"
    persist_directory: Path = Path("./.chroma")
    upsert_batch_size: int = 256


class VectorStore(Protocol):
    """Protocol for vector persistence backends."""

    @property
    def collection_name(self) -> str:
        """Name of the active collection."""

    def count(self) -> int:
        """Return the number of records; a missing collection counts as empty."""

    def upsert(self, records: Sequence[VectorRecord]) -> Sequence[str]:
        """Persist records, creating the collection if needed."""

    def query(self, vector: EmbeddingVector, k: int, *, available: int | None = None) -> Sequence[RetrievalResult]:
        """Return up to ``k`` nearest records ordered by ascending distance."""

    def reset(self) -> None:
        """Drop the collection."""


def build_chroma_client(config: VectorStoreConfig) -> ClientAPI:
    if config.url:
        url = httpx.URL(config.url)
        ssl = url.scheme == "https"
        return chromadb.HttpClient(
            host=url.host or "localhost",
            port=url.port or (443 if ssl else 8000),
            ssl=ssl,
        )
    return chromadb.PersistentClient(path=str(config.persist_directory))


class ChromaVectorStore:
    """Vector store over a single named Chroma collection using cosine distance.

    The collection handle is cached after the first lookup; ``reset()`` drops
    it, and a handle whose collection was deleted elsewhere is treated as a
    missing collection. Any other client failure, including an unreachable
    server, raises :class:`ProviderUnavailableError`.
    """

    def __init__(self, config: VectorStoreConfig | None = None, *, client: ClientAPI | None = None) -> None:
        self._config = config or VectorStoreConfig()
        self._client = client
        self._collection: Collection | None = None

    @property
    def collection_name(self) -> str:
        return self._config.collection_name

    def get_collection(self) -> Collection | None:
        """Return the collection, or ``None`` when it has not been created yet."""

        if self._collection is not None:
            return self._collection
        client = self._call("connect", self._ensure_client)
        try:
            self._collection = self._call(
                "get_collection",
                lambda: client.get_collection(name=self._config.collection_name),
                missing_ok=True,
            )
        except NotFoundError:
            return None
        return self._collection

    def get_or_create_collection(self) -> Collection:
        if self._collection is not None:
            return self._collection
        client = self._call("connect", self._ensure_client)
        self._collection = self._call(
            "create_collection",
            lambda: client.get_or_create_collection(
                name=self._config.collection_name,
                metadata=COSINE_SPACE,
            ),
        )
        return self._collection

    def count(self) -> int:
        return int(self._on_collection("count", lambda collection: collection.count(), default=0))

    def upsert(self, records: Sequence[VectorRecord]) -> Sequence[str]:
        if not records:
            return []
        collection = self.get_or_create_collection()
        batch_size = max(1, self._config.upsert_batch_size)
        written: List[str] = []
        for start in range(0, len(records), batch_size):
            batch = records[start : start + batch_size]
            ids = [record.record_id for record in batch]
            self._call(
                "upsert",
                lambda: collection.upsert(
                    ids=ids,
                    embeddings=[list(record.vector) for record in batch],
                    documents=[record.text for record in batch],
                    metadatas=[dict(record.metadata) for record in batch],
                ),
            )
            written.extend(ids)
        LOGGER.info("Upserted %d records into %s", len(written), self._config.collection_name)
        return written

    def query(self, vector: EmbeddingVector, k: int, *, available: int | None = None) -> Sequence[RetrievalResult]:
        """Nearest records first; ``available`` is a record count the caller already holds."""

        if k <= 0 or available == 0:
            return []

        def _query(collection: Collection) -> Sequence[RetrievalResult]:
            size = collection.count() if available is None else available
            if size == 0:
                return []
            results = collection.query(
                query_embeddings=[list(vector)],
                n_results=min(k, size),
                include=["documents", "metadatas", "distances"],
            )
            return self._deserialize_results(results)

        return self._on_collection("query", _query, default=[])

    def reset(self) -> None:
        if self.get_collection() is None:
            return
        self._collection = None
        try:
            self._call(
                "reset",
                lambda: self._ensure_client().delete_collection(name=self._config.collection_name),
                missing_ok=True,
            )
        except NotFoundError:
            return

    def _ensure_client(self) -> ClientAPI:
        if self._client is None:
            self._client = build_chroma_client(self._config)
        return self._client

    def _on_collection(self, operation: str, func: Callable[[Collection], T], *, default: T) -> T:
        collection = self.get_collection()
        if collection is None:
            return default
        try:
            return self._call(operation, lambda: func(collection), missing_ok=True)
        except NotFoundError:
            # deleted by another client since the handle was cached
            self._collection = None
            return default

    def _call(self, operation: str, func: Callable[[], T], *, missing_ok: bool = False) -> T:
        try:
            return func()
        except ProviderUnavailableError:
            raise
        except Exception as exc:
            if missing_ok and isinstance(exc, NotFoundError):
                raise
            LOGGER.error("Chroma %s failed on %s: %s", operation, self._config.collection_name, exc)
            raise ProviderUnavailableError(
                f"Vector store {operation} failed: {exc}",
                provider="vector_store",
                cause=exc,
            ) from exc

    def _deserialize_results(self, results: Mapping[str, Any]) -> Sequence[RetrievalResult]:
        ids = self._first(results.get("ids"))
        documents = self._first(results.get("documents"))
        metadatas = self._first(results.get("metadatas"))
        distances = self._first(results.get("distances"))
        retrieved: list[RetrievalResult] = []
        for index, record_id in enumerate(ids):
            document = documents[index] if index < len(documents) else ""
            metadata = metadatas[index] if index < len(metadatas) else None
            distance = distances[index] if index < len(distances) else None
            chunk = Chunk(text=document or "", metadata=dict(metadata or {}), chunk_id=str(record_id))
            retrieved.append(RetrievalResult(chunk=chunk, distance=float(distance) if distance is not None else 1.0))
        # nearest first; ties keep store order
        return sorted(retrieved, key=lambda result: result.distance)

    @staticmethod
    def _first(value: object) -> List[Any]:
        if isinstance(value, list) and value:
            first = value[0]
            if isinstance(first, list):
                return first
        return []


def records_from_chunks(chunks: Iterable[Chunk], vectors: Sequence[EmbeddingVector]) -> List[VectorRecord]:
    chunk_list = list(chunks)
    if len(chunk_list) != len(vectors):
        raise ValueError("Mismatch between number of chunks and embedding vectors")
    return [
        VectorRecord(record_id=chunk.chunk_id, vector=vector, text=chunk.text, metadata=dict(chunk.metadata))
        for chunk, vector in zip(chunk_list, vectors)
    ]
